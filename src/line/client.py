"""LINE Messaging API client.

Reply and push failures propagate to the caller. The loading indicator and
profile lookups are best-effort: failures are written to the error log and
swallowed so they never block message delivery.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.audit.logger import ActivityLogger
from src.models import ErrorType, RelayAPIError, RelayConfig

logger = logging.getLogger(__name__)

LINE_API_BASE = "https://api.line.me"
_TIMEOUT_SECONDS = 30.0


class LineAPIError(RelayAPIError):
    """Raised when a LINE API call fails."""


class LineClient:
    """Outbound calls to the LINE Messaging API."""

    def __init__(
        self,
        config: RelayConfig,
        activity: ActivityLogger | None = None,
        base_url: str = LINE_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = config.line_access_token
        self._loading_enabled = config.enable_loading_indicator
        self._activity = activity
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self._access_token:
            raise LineAPIError("LINE access token not configured")
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(
                verify=True, transport=self._transport, timeout=_TIMEOUT_SECONDS,
            ) as client:
                resp = await client.request(
                    method, f"{self._base_url}{path}", json=payload, headers=headers,
                )
        except httpx.HTTPError as e:
            raise LineAPIError(f"LINE API request failed: {e}") from e
        if resp.status_code != 200:
            raise LineAPIError(
                f"LINE API returned status code {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise LineAPIError(f"LINE API returned invalid JSON: {e}") from e

    def _log_api_error(self, message: str, context: dict[str, Any]) -> None:
        if self._activity:
            self._activity.error(ErrorType.API_ERROR, message, context)
        else:
            logger.warning("%s %s", message, context)

    async def reply(
        self, reply_token: str, messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Reply to an event. The reply token is single-use."""
        return await self._request(
            "POST", "/v2/bot/message/reply",
            {"replyToken": reply_token, "messages": messages},
        )

    async def push(self, to: str, messages: list[dict[str, Any]]) -> dict[str, Any]:
        """Push messages to a user, group or room without a reply token."""
        return await self._request(
            "POST", "/v2/bot/message/push", {"to": to, "messages": messages},
        )

    async def show_loading_indicator(self, reply_token: str) -> dict[str, Any] | None:
        if not self._loading_enabled:
            return None
        try:
            return await self._request(
                "POST", "/v2/bot/message/reply/loading", {"replyToken": reply_token},
            )
        except RelayAPIError as e:
            self._log_api_error(
                f"Error showing loading indicator: {e}", {"replyToken": reply_token},
            )
            return None

    async def get_user_profile(self, user_id: str) -> dict[str, Any] | None:
        try:
            return await self._request("GET", f"/v2/bot/profile/{user_id}")
        except RelayAPIError as e:
            self._log_api_error(f"Error getting user profile: {e}", {"userId": user_id})
            return None

    async def get_group_member_profile(
        self, group_id: str, user_id: str,
    ) -> dict[str, Any] | None:
        try:
            return await self._request(
                "GET", f"/v2/bot/group/{group_id}/member/{user_id}",
            )
        except RelayAPIError as e:
            self._log_api_error(
                f"Error getting group member profile: {e}",
                {"groupId": group_id, "userId": user_id},
            )
            return None

    async def get_bot_info(self) -> dict[str, Any]:
        """Fetch the bot's own display name and user ID."""
        return await self._request("GET", "/v2/bot/info")
