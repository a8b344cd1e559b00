"""Makkaizou AI platform client."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.audit.logger import ActivityLogger
from src.models import ErrorType, MakkaizouResponse, RelayAPIError, RelayConfig

logger = logging.getLogger(__name__)

MAKKAIZOU_API_BASE = "https://api.makkaizou.com"
SOURCE_LABEL = "line"
_TIMEOUT_SECONDS = 30.0


class MakkaizouAPIError(RelayAPIError):
    """Raised when the Makkaizou chat endpoint fails."""


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as e:
        raise MakkaizouAPIError(f"Makkaizou API returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MakkaizouAPIError("Makkaizou API returned a non-object body")
    return data


class MakkaizouClient:
    """Sends chat messages to Makkaizou and checks its status."""

    def __init__(
        self,
        config: RelayConfig,
        activity: ActivityLogger | None = None,
        base_url: str = MAKKAIZOU_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = config.makkaizou_api_key
        self._activity = activity
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=True, transport=self._transport, timeout=_TIMEOUT_SECONDS,
        )

    def to_chat_request(
        self, talk_id: str, message: str, metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build the chat payload; caller metadata may override the source."""
        return {
            "talk_id": talk_id,
            "message": message,
            "metadata": {"source": SOURCE_LABEL, **(metadata or {})},
        }

    async def send(
        self, talk_id: str, message: str, metadata: dict[str, Any] | None = None,
    ) -> MakkaizouResponse:
        """Send a message and return the reply with its processing time in ms.

        Raises:
            MakkaizouAPIError: No API key is configured, the request failed,
                or the endpoint answered with a non-200 status or a body
                that is not a JSON object.
        """
        if not self._api_key:
            raise MakkaizouAPIError("Makkaizou API key not configured")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = self.to_chat_request(talk_id, message, metadata)

        start = time.monotonic()
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self._base_url}/v1/chat", json=payload, headers=headers,
                )
        except httpx.HTTPError as e:
            raise MakkaizouAPIError(f"Makkaizou API request failed: {e}") from e
        processing_time = int((time.monotonic() - start) * 1000)

        if resp.status_code != 200:
            raise MakkaizouAPIError(
                f"Makkaizou API returned status code {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        data = _json_object(resp)
        result = MakkaizouResponse.model_validate(
            {**data, "processing_time": processing_time},
        )
        logger.info(
            "Makkaizou API response received (talk_id=%s, %d ms, %d chars)",
            talk_id, processing_time, len(result.response or ""),
        )
        return result

    async def check_status(self) -> dict[str, Any]:
        """Return the service status. Never raises."""
        try:
            if not self._api_key:
                raise MakkaizouAPIError("Makkaizou API key not configured")
            async with self._client() as client:
                resp = await client.get(
                    f"{self._base_url}/v1/status",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
            if resp.status_code != 200:
                raise MakkaizouAPIError(
                    f"Makkaizou API status check returned code "
                    f"{resp.status_code}: {resp.text}",
                    status_code=resp.status_code,
                )
            return _json_object(resp)
        except (RelayAPIError, httpx.HTTPError) as e:
            message = f"Error checking Makkaizou API status: {e}"
            if self._activity:
                self._activity.error(ErrorType.API_ERROR, message)
            else:
                logger.warning(message)
            return {"status": "error", "message": str(e)}
