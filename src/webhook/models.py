"""Data models for the webhook dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class WebhookRequest:
    """Inbound webhook envelope: body text plus headers and query parameters.

    raw_body holds the bytes as received, when available; the signature is
    computed over them.
    """

    body: str | None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    raw_body: bytes | None = None


@dataclass
class WebhookResponse:
    """Acknowledgment returned to LINE."""

    status_code: int = 200
    body: dict[str, Any] = field(default_factory=lambda: {"status": "ok"})


@dataclass
class EventSource:
    """Who sent an event. group_id falls back to room, then to the user."""

    source_type: str
    user_id: str
    group_id: str

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> EventSource:
        source = event.get("source") or {}
        user_id = source.get("userId", "")
        group_id = source.get("groupId") or source.get("roomId") or user_id
        return cls(
            source_type=source.get("type", ""),
            user_id=user_id,
            group_id=group_id,
        )
