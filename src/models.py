"""Shared Pydantic data models for the LINE-Makkaizou relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class ErrorType(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class LogStatus(str, Enum):
    INFO = "INFO"


# --- Errors ---


class RelayAPIError(Exception):
    """Raised when an outbound API call fails or cannot be made."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# --- Configuration Models ---


class ConfigEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str
    description: str = ""


class RelayConfig(BaseModel):
    """Relay settings read from the configuration table for one request."""

    model_config = ConfigDict(frozen=True)

    line_channel_secret: str | None = None
    line_access_token: str | None = None
    line_bot_user_id: str | None = None
    bot_name: str | None = None
    makkaizou_api_key: str | None = None
    enable_loading_indicator: bool = False
    debug_mode: bool = False


# --- Mapping Models ---


class IdentityMapping(BaseModel):
    group_id: str
    user_id: str
    talk_id: str
    created_at: str = Field(default_factory=_now_iso)
    last_used: str = Field(default_factory=_now_iso)


# --- Log Models ---


class ActivityLogEntry(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    group_id: str = ""
    user_id: str = ""
    message: str
    response: str = ""
    status: LogStatus = LogStatus.INFO
    processing_time: int | None = None


class ErrorLogEntry(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    error_type: ErrorType
    error_message: str
    context_json: str = "{}"
    stack_trace: str = ""


# --- Makkaizou Models ---


class MakkaizouResponse(BaseModel):
    """Chat endpoint reply, with the measured round-trip time attached."""

    model_config = ConfigDict(extra="allow")

    response: str | None = None
    processing_time: int = Field(default=0, ge=0)
