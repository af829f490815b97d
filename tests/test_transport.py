"""Tests for single-attempt transport and response classification."""

import json

import httpx
import pytest
import respx
from httpx import Response

from telletadmin.core.api.base import RequestSpec
from telletadmin.core.api.transport import Transport, parse_retry_after
from telletadmin.core.errors import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    RateLimitError,
)
from tests.conftest import BASE_URL


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after("1.5") == 1.5

    def test_unparseable(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
        assert parse_retry_after("-3") is None


class TestTransportSend:
    """Test Transport.send outcome classification."""

    @pytest.mark.asyncio
    async def test_json_body_and_headers(self, client_config):
        attempts = []
        transport = Transport(client_config, on_attempt=attempts.append)
        transport.set_auth_token("tok")

        async with respx.mock(base_url=BASE_URL) as router:
            route = router.get("/organizations").mock(return_value=Response(200, json=[{"_id": "1"}]))
            body = await transport.send(RequestSpec("/organizations", params={"a": 1}))

        await transport.close()

        assert body == [{"_id": "1"}]
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["User-Agent"].startswith("TelletAdminCLI/")
        assert request.url.params["a"] == "1"
        assert len(attempts) == 1
        assert attempts[0].status_code == 200
        assert attempts[0].ok

    @pytest.mark.asyncio
    async def test_text_and_empty_bodies(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/text").mock(return_value=Response(200, text="hello"))
            router.delete("/empty").mock(return_value=Response(204))
            assert await transport.send(RequestSpec("/text")) == "hello"
            assert await transport.send(RequestSpec("/empty", "delete")) is None

        await transport.close()

    @pytest.mark.asyncio
    async def test_post_sends_json(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            route = router.post("/items").mock(return_value=Response(201, json={"ok": True}))
            await transport.send(RequestSpec("/items", "POST", json_data={"name": "x"}))

        await transport.close()
        assert json.loads(route.calls.last.request.content) == {"name": "x"}

    @pytest.mark.asyncio
    async def test_server_error_message_from_body(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/boom").mock(return_value=Response(500, json={"message": "Database down"}))
            with pytest.raises(APIError) as exc_info:
                await transport.send(RequestSpec("/boom"))

        await transport.close()
        error = exc_info.value
        assert error.status_code == 500
        assert error.message == "Database down"
        assert error.response == {"message": "Database down"}
        assert error.url == f"{BASE_URL}/boom"

    @pytest.mark.asyncio
    async def test_default_error_message(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/missing").mock(return_value=Response(404, text="nope"))
            with pytest.raises(APIError, match="Request failed with status code 404"):
                await transport.send(RequestSpec("/missing"))

        await transport.close()

    @pytest.mark.asyncio
    async def test_rate_limited(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/limited").mock(return_value=Response(429, headers={"Retry-After": "5"}))
            with pytest.raises(RateLimitError) as exc_info:
                await transport.send(RequestSpec("/limited"))

        await transport.close()
        assert exc_info.value.retry_after == 5.0
        assert exc_info.value.status_code == 429
        assert str(exc_info.value) == "Rate limit exceeded. Retry after 5 seconds"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [(401, AuthenticationError), (403, AuthorizationError)],
    )
    async def test_auth_statuses(self, client_config, status, error_type):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/secret").mock(return_value=Response(status, json={"message": "no"}))
            with pytest.raises(error_type) as exc_info:
                await transport.send(RequestSpec("/secret"))

        await transport.close()
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, client_config):
        attempts = []
        transport = Transport(client_config, on_attempt=attempts.append)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/slow").mock(side_effect=httpx.ReadTimeout("timed out"))
            with pytest.raises(NetworkError, match="Request timed out after 30s"):
                await transport.send(RequestSpec("/slow"))

        await transport.close()
        assert attempts[0].status_code is None
        assert attempts[0].error

    @pytest.mark.asyncio
    async def test_connect_error_is_network_error(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/down").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(NetworkError) as exc_info:
                await transport.send(RequestSpec("/down"))

        await transport.close()
        assert exc_info.value.message == f"Cannot connect to {BASE_URL}"
        assert isinstance(exc_info.value.cause, httpx.ConnectError)


class TestRequestSpec:
    def test_method_uppercased(self):
        assert RequestSpec("/x", "post").method == "POST"

    def test_from_mapping(self):
        spec = RequestSpec.from_mapping({"url": "/x", "method": "put", "data": {"a": 1}})
        assert spec.path == "/x"
        assert spec.method == "PUT"
        assert spec.json_data == {"a": 1}

    def test_from_mapping_requires_path(self):
        with pytest.raises(ValueError):
            RequestSpec.from_mapping({"method": "GET"})


class TestRequestErrors:
    """Test classification of non-transport httpx failures."""

    @pytest.mark.asyncio
    async def test_redirect_loop_is_api_error(self, client_config):
        attempts = []
        transport = Transport(client_config, on_attempt=attempts.append)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/loop").mock(return_value=Response(302, headers={"Location": f"{BASE_URL}/loop"}))
            with pytest.raises(APIError, match="Too many redirects"):
                await transport.send(RequestSpec("/loop"))

        await transport.close()
        assert len(attempts) == 1
        assert attempts[0].error.startswith("Too many redirects")

    @pytest.mark.asyncio
    async def test_decoding_error_is_api_error(self, client_config):
        transport = Transport(client_config)

        async with respx.mock(base_url=BASE_URL) as router:
            router.get("/garbled").mock(side_effect=httpx.DecodingError("bad gzip"))
            with pytest.raises(APIError, match="Could not decode response"):
                await transport.send(RequestSpec("/garbled"))

        await transport.close()
