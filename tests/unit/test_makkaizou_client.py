"""Tests for the Makkaizou API client."""

from __future__ import annotations

import httpx
import pytest

from src.audit.logger import ActivityLogger
from src.makkaizou.client import MakkaizouAPIError, MakkaizouClient
from src.store.db import RelayDB
from tests.conftest import RecordingTransport, make_config


def _client(handler, activity: ActivityLogger | None = None, **config: object):
    transport = RecordingTransport(handler)
    client = MakkaizouClient(
        make_config(**config), activity,
        base_url="https://makkaizou.test", transport=transport,
    )
    return client, transport


def _reply(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"response": "Hello!", "conversation_turn": 3})


class TestChatRequest:
    def test_payload_format(self) -> None:
        client, _ = _client(_reply)
        payload = client.to_chat_request("wiz-user-id-123456", "hi", {"user_id": "U1"})
        assert payload == {
            "talk_id": "wiz-user-id-123456",
            "message": "hi",
            "metadata": {"source": "line", "user_id": "U1"},
        }

    def test_source_label_without_metadata(self) -> None:
        client, _ = _client(_reply)
        assert client.to_chat_request("t", "m")["metadata"] == {"source": "line"}


class TestSend:
    @pytest.mark.asyncio
    async def test_returns_reply_and_processing_time(self) -> None:
        client, transport = _client(_reply)
        result = await client.send("wiz-user-id-123456", "hi", {"user_id": "U1"})

        assert result.response == "Hello!"
        assert result.processing_time >= 0
        assert result.model_extra == {"conversation_turn": 3}

        request = transport.requests[0]
        assert request.url.path == "/v1/chat"
        assert request.headers["authorization"] == "Bearer mk-key"
        assert transport.json_bodies("/v1/chat")[0]["metadata"]["source"] == "line"

    @pytest.mark.asyncio
    async def test_non_200_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        client, _ = _client(handler)
        with pytest.raises(MakkaizouAPIError) as exc_info:
            await client.send("t", "hi")
        assert exc_info.value.status_code == 503
        assert "maintenance" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self) -> None:
        client, transport = _client(_reply, makkaizou_api_key=None)
        with pytest.raises(MakkaizouAPIError, match="API key not configured"):
            await client.send("t", "hi")
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        client, _ = _client(handler)
        with pytest.raises(MakkaizouAPIError, match="invalid JSON"):
            await client.send("t", "hi")

    @pytest.mark.asyncio
    async def test_transport_error_becomes_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _client(handler)
        with pytest.raises(MakkaizouAPIError, match="request failed") as exc_info:
            await client.send("t", "hi")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_becomes_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = _client(handler)
        with pytest.raises(MakkaizouAPIError):
            await client.send("t", "hi")

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self) -> None:
        client, _ = _client(lambda request: httpx.Response(200, json=["Hello!"]))
        with pytest.raises(MakkaizouAPIError, match="non-object"):
            await client.send("t", "hi")

    @pytest.mark.asyncio
    async def test_missing_response_field_is_allowed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        client, _ = _client(handler)
        result = await client.send("t", "hi")
        assert result.response is None

    @pytest.mark.asyncio
    async def test_send_does_not_write_error_log(self, db: RelayDB) -> None:
        activity = ActivityLogger(db)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        client, _ = _client(handler, activity)
        with pytest.raises(MakkaizouAPIError):
            await client.send("t", "hi")
        assert activity.recent_errors() == []


class TestCheckStatus:
    @pytest.mark.asyncio
    async def test_returns_status_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/v1/status"
            return httpx.Response(200, json={"status": "ok", "version": "1.2"})

        client, _ = _client(handler)
        assert await client.check_status() == {"status": "ok", "version": "1.2"}

    @pytest.mark.asyncio
    async def test_failure_becomes_error_result(self, db: RelayDB) -> None:
        activity = ActivityLogger(db)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="bad key")

        client, _ = _client(handler, activity)
        result = await client.check_status()
        assert result["status"] == "error"
        assert "401" in result["message"]
        assert len(activity.recent_errors()) == 1

    @pytest.mark.asyncio
    async def test_connection_error_never_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client, _ = _client(handler)
        result = await client.check_status()
        assert result["status"] == "error"

    @pytest.mark.asyncio
    async def test_non_object_status_becomes_error_result(self) -> None:
        client, _ = _client(lambda request: httpx.Response(200, json=["ok"]))
        result = await client.check_status()
        assert result["status"] == "error"
        assert "non-object" in result["message"]

    @pytest.mark.asyncio
    async def test_undecodable_status_body_never_raises(self) -> None:
        client, _ = _client(lambda request: httpx.Response(200, content=b"\xff\xfe\x00"))
        result = await client.check_status()
        assert result["status"] == "error"

    @pytest.mark.asyncio
    async def test_missing_api_key_becomes_error_result(self) -> None:
        client, transport = _client(_reply, makkaizou_api_key=None)
        result = await client.check_status()
        assert result == {"status": "error", "message": "Makkaizou API key not configured"}
        assert transport.requests == []
