"""Activity and error logging to the relay database, mirrored to stdlib logging."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from src.models import ActivityLogEntry, ErrorLogEntry, ErrorType, LogStatus
from src.store.db import RelayDB

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Append-only writer for the logs and error_logs tables."""

    def __init__(self, db: RelayDB, debug_mode: bool = False) -> None:
        self._db = db
        self._debug_mode = debug_mode

    def info(
        self,
        message: str,
        *,
        group_id: str = "",
        user_id: str = "",
        response: str = "",
        processing_time: int | None = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            group_id=group_id,
            user_id=user_id,
            message=message,
            response=response,
            status=LogStatus.INFO,
            processing_time=processing_time,
        )
        self._db.execute(
            """INSERT INTO logs
               (timestamp, group_id, user_id, message, response, status, processing_time)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.timestamp,
                entry.group_id,
                entry.user_id,
                entry.message,
                entry.response,
                entry.status.value,
                entry.processing_time,
            ),
        )
        logger.info("%s (group=%s user=%s)", message, group_id, user_id)
        return entry

    def debug(self, message: str, **data: Any) -> None:
        if not self._debug_mode:
            return
        logger.debug("%s %s", message, data)

    def warning(self, message: str, **data: Any) -> None:
        logger.warning("%s %s", message, data)

    def error(
        self,
        error_type: ErrorType,
        message: str,
        context: dict[str, Any] | None = None,
        stack: str | None = None,
    ) -> ErrorLogEntry:
        """Record a failure.

        A failure to persist the row is reported through stdlib logging and
        never raised, so callers at the webhook boundary stay exception-free.
        """
        context = context or {}
        entry = ErrorLogEntry(
            error_type=error_type,
            error_message=message,
            context_json=json.dumps(context, default=str),
            stack_trace=stack or str(context.get("stack", "")),
        )
        logger.error("%s: %s", error_type.value, message)
        try:
            self._db.execute(
                """INSERT INTO error_logs
                   (timestamp, error_type, error_message, context_json, stack_trace)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    entry.timestamp,
                    entry.error_type.value,
                    entry.error_message,
                    entry.context_json,
                    entry.stack_trace,
                ),
            )
        except sqlite3.Error:
            logger.exception("Failed to persist error log entry")
        return entry

    def recent(self, limit: int = 20) -> list[ActivityLogEntry]:
        rows = self._db.fetch_all(
            "SELECT * FROM logs ORDER BY id DESC LIMIT ?", (limit,),
        )
        return [ActivityLogEntry.model_validate(r) for r in rows]

    def recent_errors(self, limit: int = 20) -> list[ErrorLogEntry]:
        rows = self._db.fetch_all(
            "SELECT * FROM error_logs ORDER BY id DESC LIMIT ?", (limit,),
        )
        return [ErrorLogEntry.model_validate(r) for r in rows]

    def find_direct_message_user(self) -> str | None:
        """Return the user of the first logged 1:1 exchange, if any.

        Direct messages are logged with an empty group or with the group set
        to the user ID itself.
        """
        row = self._db.fetch_one(
            """SELECT user_id FROM logs
               WHERE user_id != '' AND (group_id = '' OR group_id = user_id)
               ORDER BY id LIMIT 1""",
        )
        return str(row["user_id"]) if row else None
