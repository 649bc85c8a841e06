"""Tests for the async state service client."""

import json

import httpx
import pytest

from beliefsync.adapter import HybridStorage
from beliefsync.credentials import Credentials
from beliefsync.remote import RemoteStateClient
from beliefsync.types import (
    SYNC_ERROR_AUTH,
    SYNC_ERROR_HTTP,
    SYNC_ERROR_MALFORMED,
    SYNC_ERROR_NETWORK,
    SYNC_ERROR_OFFLINE,
    SYNC_ERROR_TIMEOUT,
)

BASE = "https://sync.example.com"


def make_client(handler, **creds) -> RemoteStateClient:
    credentials = Credentials(backend_url=BASE, **(creds or {"auth_token": "secret"}))
    return RemoteStateClient(credentials, transport=httpx.MockTransport(handler))


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_returns_record(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"data": '{"dark":true}', "updated_at": 1234})

        client = make_client(handler)
        record = await client.fetch("theme")
        await client.aclose()

        assert record.key == "theme"
        assert record.data == '{"dark":true}'
        assert record.updated_at == 1234
        assert seen["url"] == f"{BASE}/api/state?key=theme"
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_structured_data_is_reserialized(self):
        client = make_client(
            lambda r: httpx.Response(200, json={"data": {"state": {"a": 1}}, "updated_at": 5})
        )
        record = await client.fetch("k")
        assert json.loads(record.data) == {"state": {"a": 1}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404, json={"data": None}),
            httpx.Response(401, json={"detail": "Unauthorized"}),
            httpx.Response(500, json={"detail": "Internal server error"}),
            httpx.Response(200, content=b"<html>oops</html>"),
            httpx.Response(200, json=["not", "a", "dict"]),
            httpx.Response(200, json={"data": "", "updated_at": 5}),
            httpx.Response(200, json={"data": None, "updated_at": 5}),
            httpx.Response(200, json={"data": "x"}),
            httpx.Response(200, json={"data": "x", "updated_at": "soon"}),
            httpx.Response(200, json={"data": "x", "updated_at": True}),
        ],
    )
    async def test_unusable_responses_are_absent(self, response):
        client = make_client(lambda r: response)
        assert await client.fetch("k") is None

    @pytest.mark.asyncio
    async def test_network_error_is_absent(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await make_client(handler).fetch("k") is None

    @pytest.mark.asyncio
    async def test_unconfigured_client_never_calls_out(self):
        client = RemoteStateClient(Credentials())
        assert not client.configured
        assert await client.fetch("k") is None


class TestSend:
    @pytest.mark.asyncio
    async def test_send_posts_key_and_value(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/state"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})

        result = await make_client(handler).send("theme", '{"dark":true}')
        assert result.ok
        assert result.ack.status_code == 200
        assert bodies == [{"key": "theme", "value": '{"dark":true}'}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,category",
        [(401, SYNC_ERROR_AUTH), (403, SYNC_ERROR_AUTH), (500, SYNC_ERROR_HTTP), (400, SYNC_ERROR_HTTP)],
    )
    async def test_non_2xx_is_categorised(self, status_code, category):
        result = await make_client(lambda r: httpx.Response(status_code)).send("k", "v")
        assert not result.ok
        assert result.error.category == category
        assert result.error.status_code == status_code

    @pytest.mark.asyncio
    async def test_timeout_is_categorised(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = await make_client(handler).send("k", "v")
        assert result.error.category == SYNC_ERROR_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error_is_categorised(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await make_client(handler).send("k", "v")
        assert result.error.category == SYNC_ERROR_NETWORK
        assert "k" in str(result.error)

    @pytest.mark.asyncio
    async def test_no_backend_is_offline(self):
        result = await RemoteStateClient(Credentials()).send("k", "v")
        assert result.error.category == SYNC_ERROR_OFFLINE

    @pytest.mark.asyncio
    async def test_cookie_credential_used_without_bearer(self):
        seen = {}

        def handler(request):
            seen["cookie"] = request.headers.get("cookie")
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"success": True})

        await make_client(handler, cookie_token="sess").send("k", "v")
        assert seen == {"cookie": "auth-token=sess", "auth": None}

    @pytest.mark.asyncio
    async def test_unparsable_success_body_is_malformed(self):
        result = await make_client(
            lambda r: httpx.Response(200, content=b"<html>captive portal</html>")
        ).send("k", "v")
        assert not result.ok
        assert result.error.category == SYNC_ERROR_MALFORMED
        assert result.error.status_code == 200

    @pytest.mark.asyncio
    async def test_empty_success_body_is_acknowledged(self):
        assert (await make_client(lambda r: httpx.Response(204)).send("k", "v")).ok

    @pytest.mark.asyncio
    async def test_malformed_ack_keeps_write_queued(self, local_store, queue, registry):
        remote = make_client(lambda r: httpx.Response(200, content=b"not json"))
        storage = HybridStorage(local_store, queue, remote, registry)
        storage.set_item("k", "v")
        await storage.wait_idle()
        assert queue.get("k").value == "v"


class TestDeleteAndHealth:
    @pytest.mark.asyncio
    async def test_delete_sends_key_param(self):
        def handler(request):
            assert request.method == "DELETE"
            assert request.url.params["key"] == "k"
            return httpx.Response(200, json={"success": True})

        assert (await make_client(handler).delete("k")).ok

    @pytest.mark.asyncio
    async def test_delete_failure_is_result_not_exception(self):
        result = await make_client(lambda r: httpx.Response(503)).delete("k")
        assert result.error.category == SYNC_ERROR_HTTP

    @pytest.mark.asyncio
    async def test_health_check(self):
        def handler(request):
            assert request.url.path == "/api/health"
            return httpx.Response(200, json={"status": "healthy", "database": "connected"})

        health = await make_client(handler).health_check()
        assert health["healthy"] is True
        assert "latency_ms" in health

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        health = await make_client(handler).health_check()
        assert health["healthy"] is False
        assert "Connection failed" in health["error"]
