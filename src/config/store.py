"""Configuration store backed by the SQLite configuration table."""

from __future__ import annotations

from src.models import ConfigEntry, RelayConfig
from src.store.db import RelayDB

LINE_CHANNEL_SECRET = "line_channel_secret"
LINE_ACCESS_TOKEN = "line_access_token"
LINE_BOT_USER_ID = "line_bot_user_id"
BOT_NAME = "bot_name"
MAKKAIZOU_API_KEY = "makkaizou_api_key"
ENABLE_LOADING_INDICATOR = "enable_loading_indicator"
DEBUG_MODE = "debug_mode"

# Known keys, in display order, with their seed value and description
DEFAULT_ENTRIES: tuple[ConfigEntry, ...] = (
    ConfigEntry(
        key=LINE_CHANNEL_SECRET, value="YOUR_CHANNEL_SECRET",
        description="Channel secret for validating LINE webhooks",
    ),
    ConfigEntry(
        key=LINE_ACCESS_TOKEN, value="YOUR_ACCESS_TOKEN",
        description="Access token for the LINE Messaging API",
    ),
    ConfigEntry(
        key=LINE_BOT_USER_ID, value="YOUR_BOT_USER_ID",
        description="The LINE user ID of the bot",
    ),
    ConfigEntry(
        key=BOT_NAME, value="LineBot",
        description="The name of the bot for mention detection",
    ),
    ConfigEntry(
        key=MAKKAIZOU_API_KEY, value="YOUR_MAKKAIZOU_API_KEY",
        description="API key for the Makkaizou platform",
    ),
    ConfigEntry(
        key=ENABLE_LOADING_INDICATOR, value="true",
        description="Whether to show loading indicators",
    ),
    ConfigEntry(
        key=DEBUG_MODE, value="true",
        description="Whether to enable debug logging",
    ),
)

SECRET_KEYS = frozenset({LINE_CHANNEL_SECRET, LINE_ACCESS_TOKEN, MAKKAIZOU_API_KEY})


def _flag(value: str | None) -> bool:
    return value == "true"


class ConfigStore:
    """Key/value access to relay configuration rows."""

    def __init__(self, db: RelayDB) -> None:
        self._db = db

    def get(self, key: str) -> str | None:
        row = self._db.fetch_one(
            "SELECT value FROM configuration WHERE key = ?", (key,),
        )
        return str(row["value"]) if row else None

    def set(self, key: str, value: str, description: str = "") -> None:
        """Create or update a configuration entry.

        An empty description leaves an existing description untouched.
        """
        self._db.execute(
            """INSERT INTO configuration (key, value, description)
               VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                 value=excluded.value,
                 description=CASE WHEN excluded.description != ''
                                  THEN excluded.description
                                  ELSE configuration.description END""",
            (key, value, description),
        )

    def entries(self) -> list[ConfigEntry]:
        rows = self._db.fetch_all(
            "SELECT key, value, description FROM configuration ORDER BY key",
        )
        return [ConfigEntry.model_validate(r) for r in rows]

    def load(self) -> RelayConfig:
        """Read all known keys in one query and build a RelayConfig."""
        values = {e.key: e.value for e in self.entries()}
        return RelayConfig(
            line_channel_secret=values.get(LINE_CHANNEL_SECRET) or None,
            line_access_token=values.get(LINE_ACCESS_TOKEN) or None,
            line_bot_user_id=values.get(LINE_BOT_USER_ID) or None,
            bot_name=values.get(BOT_NAME) or None,
            makkaizou_api_key=values.get(MAKKAIZOU_API_KEY) or None,
            enable_loading_indicator=_flag(values.get(ENABLE_LOADING_INDICATOR)),
            debug_mode=_flag(values.get(DEBUG_MODE)),
        )

    def masked(self) -> dict[str, str]:
        """Current values of the known keys, with secrets masked."""
        result: dict[str, str] = {}
        for entry in DEFAULT_ENTRIES:
            value = self.get(entry.key)
            if not value:
                result[entry.key] = "Not set"
            elif entry.key in SECRET_KEYS:
                result[entry.key] = "********" + value[-4:]
            else:
                result[entry.key] = value
        return result

    def apply_defaults(self) -> list[str]:
        """Seed every known key that has no value yet. Returns the keys written."""
        written = []
        for entry in DEFAULT_ENTRIES:
            if self.get(entry.key):
                continue
            self.set(entry.key, entry.value, entry.description)
            written.append(entry.key)
        return written
