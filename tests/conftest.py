"""Shared test fixtures for the LINE-Makkaizou relay."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from src.audit.logger import ActivityLogger
from src.config.store import ConfigStore
from src.models import RelayConfig
from src.store.db import RelayDB


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Create a temporary database path for relay tests."""
    return str(tmp_path / "test_relay.db")


@pytest.fixture
def db(db_path: str) -> Iterator[RelayDB]:
    relay_db = RelayDB(db_path)
    yield relay_db
    relay_db.close()


@pytest.fixture
def config_store(db: RelayDB) -> ConfigStore:
    return ConfigStore(db)


@pytest.fixture
def activity(db: RelayDB) -> ActivityLogger:
    return ActivityLogger(db, debug_mode=True)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def json_bodies(self, path: str) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> RelayConfig:
    """Factory for RelayConfig with sensible defaults."""
    defaults: dict[str, Any] = {
        "line_channel_secret": None,
        "line_access_token": "line-token",
        "line_bot_user_id": "Ubot",
        "bot_name": "LineBot",
        "makkaizou_api_key": "mk-key",
        "enable_loading_indicator": False,
        "debug_mode": False,
    }
    defaults.update(kwargs)
    return RelayConfig(**defaults)


def make_text_event(**kwargs: Any) -> dict[str, Any]:
    """Factory for a LINE group text message event."""
    text = kwargs.pop("text", "@LineBot hello")
    source = kwargs.pop("source", {
        "type": "group", "groupId": "Cgroup1", "userId": "Uuser1",
    })
    event: dict[str, Any] = {
        "type": "message",
        "replyToken": "reply-token-1",
        "timestamp": 1700000000000,
        "source": source,
        "message": {"id": "m1", "type": "text", "text": text},
    }
    event.update(kwargs)
    return event


def seed_config(store: ConfigStore, **overrides: str) -> None:
    """Write a working configuration into the store."""
    values = {
        "line_access_token": "line-token",
        "line_bot_user_id": "Ubot",
        "bot_name": "LineBot",
        "makkaizou_api_key": "mk-key",
    }
    values.update(overrides)
    for key, value in values.items():
        store.set(key, value)
