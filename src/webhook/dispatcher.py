"""Webhook dispatcher: LINE events in, Makkaizou replies out.

Pipeline per delivery:
1. Preflight check (no body -> bare acknowledgment)
2. Signature verification
3. Batch parsing
4. Per event: filter, mention check, loading indicator, talk_id resolution,
   profile lookup, Makkaizou call, reply

LINE retries deliveries that are not acknowledged, so every path ends in a
200 acknowledgment. Failures are written to the error log instead.
"""

from __future__ import annotations

import json
import logging
import traceback
from typing import Any

from src.audit.logger import ActivityLogger
from src.line.client import LineClient
from src.line.messages import create_text_message
from src.makkaizou.client import MakkaizouClient
from src.makkaizou.formatter import format_response
from src.mapping.manager import TalkIdManager
from src.models import ErrorType, MakkaizouResponse, RelayAPIError, RelayConfig
from src.webhook.mention import is_bot_mentioned, strip_mention
from src.webhook.models import EventSource, WebhookRequest, WebhookResponse
from src.webhook.signature import find_signature, verify_signature

logger = logging.getLogger(__name__)

APOLOGY_TEXT = (
    "Sorry, I encountered an error while processing your message. "
    "Please try again later."
)
UNKNOWN_USER = "Unknown User"


class WebhookDispatcher:
    """Validates LINE deliveries and relays mentioned text messages."""

    def __init__(
        self,
        config: RelayConfig,
        talk_ids: TalkIdManager,
        line: LineClient,
        makkaizou: MakkaizouClient,
        activity: ActivityLogger,
    ) -> None:
        self._config = config
        self._talk_ids = talk_ids
        self._line = line
        self._makkaizou = makkaizou
        self._activity = activity

    async def handle(self, request: WebhookRequest) -> WebhookResponse:
        """Process a delivery. Always returns a 200 acknowledgment."""
        if not request.body:
            return WebhookResponse()

        try:
            await self._handle_delivery(request)
        except Exception as e:
            self._activity.error(
                ErrorType.UNKNOWN_ERROR,
                f"Unhandled error in webhook handler: {e}",
                stack=traceback.format_exc(),
            )
        return WebhookResponse()

    async def _handle_delivery(self, request: WebhookRequest) -> None:
        body = request.body or ""
        try:
            self._activity.debug("Received webhook", headers=request.headers)

            if not self.validate_signature(request):
                self._activity.error(
                    ErrorType.VALIDATION_ERROR, "Invalid signature", {"payload": body},
                )
                return

            payload = json.loads(body)
            for event in payload.get("events") or []:
                try:
                    await self.process_event(event)
                except Exception as e:
                    self._activity.error(
                        ErrorType.PROCESSING_ERROR,
                        f"Error processing event: {e}",
                        {"event": json.dumps(event, default=str)},
                        stack=traceback.format_exc(),
                    )
        except Exception as e:
            self._activity.error(
                ErrorType.PROCESSING_ERROR,
                f"Error processing webhook: {e}",
                stack=traceback.format_exc(),
            )

    def validate_signature(self, request: WebhookRequest) -> bool:
        secret = self._config.line_channel_secret
        if not secret:
            self._activity.warning(
                "No channel secret configured, skipping signature validation",
            )
            return True
        signature = find_signature(request)
        if not signature:
            self._activity.error(ErrorType.VALIDATION_ERROR, "No signature provided")
            return False
        signed = request.raw_body
        if signed is None:
            signed = request.body or ""
        return verify_signature(secret, signed, signature)

    def is_relevant(self, event: dict[str, Any]) -> bool:
        """Return True for text message events that mention the bot."""
        if event.get("type") != "message":
            self._activity.debug("Ignoring non-message event", event_type=event.get("type"))
            return False
        message = event.get("message") or {}
        if message.get("type") != "text":
            self._activity.debug("Ignoring non-text message", message_type=message.get("type"))
            return False
        if not self._config.bot_name:
            self._activity.warning(
                "No bot name configured, assuming all messages mention the bot",
            )
        if not is_bot_mentioned(
            message, self._config.bot_name, self._config.line_bot_user_id,
        ):
            self._activity.debug("Bot not mentioned, ignoring message", text=message.get("text"))
            return False
        return True

    async def process_event(self, event: dict[str, Any]) -> None:
        if not self.is_relevant(event):
            return

        reply_token = event.get("replyToken")
        try:
            exchange = await self._relay(event, reply_token)
        except Exception as e:
            error_type = (
                ErrorType.API_ERROR if isinstance(e, RelayAPIError)
                else ErrorType.PROCESSING_ERROR
            )
            self._activity.error(
                error_type,
                f"Error processing message: {e}",
                {"event": json.dumps(event, default=str)},
                stack=traceback.format_exc(),
            )
            if reply_token:
                await self._send_apology(reply_token, e)
            return

        # Reply already sent; its token cannot carry an apology
        if exchange is not None:
            source, text, response = exchange
            self._activity.info(
                text,
                group_id=source.group_id,
                user_id=source.user_id,
                response=response.response or "",
                processing_time=response.processing_time,
            )

    async def _relay(
        self, event: dict[str, Any], reply_token: str | None,
    ) -> tuple[EventSource, str, MakkaizouResponse] | None:
        """Relay one event. Returns what to log when a reply was sent."""
        message = event["message"]
        if reply_token:
            await self._line.show_loading_indicator(reply_token)

        source = EventSource.from_event(event)
        talk_id = self._talk_ids.resolve(source.group_id, source.user_id)
        profile = await self._fetch_profile(source)

        metadata = {
            "source_type": source.source_type,
            "user_id": source.user_id,
            "group_id": source.group_id,
            "user_name": (profile or {}).get("displayName") or UNKNOWN_USER,
            "message_id": message.get("id"),
            "timestamp": event.get("timestamp"),
        }
        text = strip_mention(message.get("text", ""), self._config.bot_name)

        logger.info(
            "Sending message to Makkaizou (talk_id=%s group=%s user=%s)",
            talk_id, source.group_id, source.user_id,
        )
        response = await self._makkaizou.send(talk_id, text, metadata)
        line_messages = format_response(response)

        if not reply_token or not line_messages:
            return None
        await self._line.reply(reply_token, line_messages)
        return source, text, response

    async def _fetch_profile(self, source: EventSource) -> dict[str, Any] | None:
        if source.source_type == "user":
            return await self._line.get_user_profile(source.user_id)
        if source.source_type == "group" and source.group_id:
            return await self._line.get_group_member_profile(
                source.group_id, source.user_id,
            )
        return None

    async def _send_apology(self, reply_token: str, original: Exception) -> None:
        try:
            await self._line.reply(reply_token, [create_text_message(APOLOGY_TEXT)])
        except Exception as e:
            self._activity.error(
                ErrorType.API_ERROR,
                f"Error sending error message: {e}",
                {"originalError": str(original)},
            )
