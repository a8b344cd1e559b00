"""FastAPI application receiving LINE webhooks."""

from __future__ import annotations

import logging
import os

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.audit.logger import ActivityLogger
from src.config.store import ConfigStore
from src.line.client import LINE_API_BASE, LineClient
from src.makkaizou.client import MAKKAIZOU_API_BASE, MakkaizouClient
from src.mapping.manager import TalkIdManager
from src.mapping.repository import SQLiteMappingRepository
from src.store.db import RelayDB
from src.webhook.dispatcher import WebhookDispatcher
from src.webhook.models import WebhookRequest

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

WEBHOOK_PATHS = ("/", "/webhook")


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
    db_path = os.environ.get("RELAY_DB_PATH", "data/relay.db")
    return create_app(
        RelayDB(db_path),
        line_base_url=os.environ.get("LINE_API_BASE", LINE_API_BASE),
        makkaizou_base_url=os.environ.get("MAKKAIZOU_API_BASE", MAKKAIZOU_API_BASE),
    )


def build_dispatcher(
    db: RelayDB,
    line_base_url: str = LINE_API_BASE,
    makkaizou_base_url: str = MAKKAIZOU_API_BASE,
    transport: httpx.AsyncBaseTransport | None = None,
) -> WebhookDispatcher:
    """Wire a dispatcher from the configuration currently stored in the db."""
    config = ConfigStore(db).load()
    activity = ActivityLogger(db, debug_mode=config.debug_mode)
    return WebhookDispatcher(
        config=config,
        talk_ids=TalkIdManager(SQLiteMappingRepository(db)),
        line=LineClient(
            config, activity, base_url=line_base_url, transport=transport,
        ),
        makkaizou=MakkaizouClient(
            config, activity, base_url=makkaizou_base_url, transport=transport,
        ),
        activity=activity,
    )


def _ack(body: dict[str, str], status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


def create_app(
    db: RelayDB,
    line_base_url: str = LINE_API_BASE,
    makkaizou_base_url: str = MAKKAIZOU_API_BASE,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the relay app. Configuration is re-read from the db per delivery."""
    app = FastAPI(docs_url=None, redoc_url=None)

    async def liveness() -> JSONResponse:
        return _ack({"status": "ok", "message": "Webhook is working!"})

    async def preflight() -> JSONResponse:
        return _ack({"status": "ok"})

    async def webhook(request: Request) -> JSONResponse:
        raw = await request.body()
        wh_request = WebhookRequest(
            body=raw.decode("utf-8", errors="replace") if raw else None,
            headers=dict(request.headers),
            params=dict(request.query_params),
            raw_body=raw or None,
        )
        try:
            dispatcher = build_dispatcher(
                db, line_base_url, makkaizou_base_url, transport,
            )
            result = await dispatcher.handle(wh_request)
        except Exception:
            # Config load failed; LINE still gets its 200
            logger.exception("Webhook dispatch failed before processing")
            return _ack({"status": "ok"})
        return _ack(result.body, result.status_code)

    for path in WEBHOOK_PATHS:
        app.add_api_route(path, webhook, methods=["POST"])
        app.add_api_route(path, liveness, methods=["GET"])
        app.add_api_route(path, preflight, methods=["OPTIONS"])
    app.add_api_route("/health", liveness, methods=["GET"])

    return app
