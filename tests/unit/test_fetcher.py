"""Unit tests for gumsync.fetcher."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from gumsync.config import ApiSettings
from gumsync.errors import DecodeError, ErrorCode, HttpError, NetworkError
from gumsync.fetcher import SESSION_COOKIE, Fetcher, build_http_client
from tests.helpers import BASE_URL


class _HangingTransport(httpx.AsyncBaseTransport):
    """Never answers; the request only ends when its task is cancelled."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        client = build_http_client(ApiSettings(base_url=BASE_URL, timeout=3.0))
        try:
            assert isinstance(client, httpx.AsyncClient)
            assert str(client.base_url) == f"{BASE_URL}/"
            assert client.timeout.read == 3.0
            assert client.headers["Accept"] == "application/json"
        finally:
            await client.aclose()

    async def test_session_token_sent_as_cookie(self) -> None:
        client = build_http_client(ApiSettings(base_url=BASE_URL, session_token="tok"))
        try:
            assert client.cookies.get(SESSION_COOKIE) == "tok"
        finally:
            await client.aclose()


# ---------------------------------------------------------------------------
# fetch_resource
# ---------------------------------------------------------------------------


class TestFetchResource:
    async def test_ok_returns_body_and_etag(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(
            return_value=httpx.Response(200, json={"boards": []}, headers={"ETag": '"v1"'})
        )
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert result.ok
        assert result.status_code == 200
        assert result.body == {"boards": []}
        assert result.etag == '"v1"'
        assert result.error is None

    async def test_poll_headers_sent(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        route = api.get("/api/boards").mock(return_value=httpx.Response(200, json={}))
        await Fetcher(http_client).fetch_resource("/api/boards")
        request = route.calls.last.request
        assert request.headers["Cache-Control"] == "no-cache"
        assert request.headers["Pragma"] == "no-cache"
        assert "If-None-Match" not in request.headers

    async def test_etag_sent_as_if_none_match(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        route = api.get("/api/boards").mock(return_value=httpx.Response(304))
        result = await Fetcher(http_client).fetch_resource("/api/boards", etag='"v1"')
        assert route.calls.last.request.headers["If-None-Match"] == '"v1"'
        assert result.not_modified
        assert result.body is None
        # no ETag echoed: keep the one we sent
        assert result.etag == '"v1"'

    async def test_http_error_is_typed(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(
            return_value=httpx.Response(403, json={"error": "Access denied"})
        )
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert result.status == "error"
        assert isinstance(result.error, HttpError)
        assert result.error.status_code == 403
        assert result.error.message == "Access denied"
        assert result.error.recoverable is False

    async def test_server_error_is_recoverable(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(return_value=httpx.Response(500))
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert isinstance(result.error, HttpError)
        assert result.error.recoverable is True
        assert result.error.message == "HTTP 500"

    async def test_network_error_is_typed(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(side_effect=httpx.ConnectError("Connection refused"))
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert result.status == "error"
        assert isinstance(result.error, NetworkError)
        assert result.error.code == ErrorCode.NETWORK_ERROR
        assert result.error.recoverable is True

    async def test_redirect_loop_is_typed(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(side_effect=httpx.TooManyRedirects("redirect loop"))
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert result.status == "error"
        assert isinstance(result.error, NetworkError)
        assert "TooManyRedirects" in result.error.message

    async def test_malformed_json_is_decode_error(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.get("/api/boards").mock(return_value=httpx.Response(200, text="<html>"))
        result = await Fetcher(http_client).fetch_resource("/api/boards")
        assert result.status == "error"
        assert isinstance(result.error, DecodeError)
        assert result.status_code == 200

    async def test_cancellation_propagates(self) -> None:
        async with httpx.AsyncClient(base_url=BASE_URL, transport=_HangingTransport()) as client:
            task = asyncio.create_task(Fetcher(client).fetch_resource("/api/boards"))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------


class TestRequest:
    async def test_returns_decoded_json(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        route = api.post("/api/notes").mock(
            return_value=httpx.Response(201, json={"id": "note-42"})
        )
        result = await Fetcher(http_client).request(
            "POST", "/api/notes", json_body={"boardId": "b1", "content": "hi"}
        )
        assert result == {"id": "note-42"}
        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/json"
        assert request.read() == b'{"boardId": "b1", "content": "hi"}'

    async def test_empty_body_returns_none(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.delete("/api/notes/n1").mock(return_value=httpx.Response(204))
        assert await Fetcher(http_client).request("DELETE", "/api/notes/n1") is None

    async def test_error_message_from_body(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.patch("/api/notes/n1").mock(
            return_value=httpx.Response(403, json={"error": "Forbidden"})
        )
        with pytest.raises(HttpError) as exc_info:
            await Fetcher(http_client).request("PATCH", "/api/notes/n1", json_body={})
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Forbidden"
        assert exc_info.value.to_dict() == {
            "code": "HTTP_ERROR",
            "message": "Forbidden",
            "recoverable": False,
            "status_code": 403,
        }

    async def test_network_error_raised(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.post("/api/notes").mock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(NetworkError):
            await Fetcher(http_client).request("POST", "/api/notes", json_body={})

    async def test_redirect_loop_raised_as_network_error(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.patch("/api/notes/n1").mock(side_effect=httpx.TooManyRedirects("redirect loop"))
        with pytest.raises(NetworkError) as exc_info:
            await Fetcher(http_client).request("PATCH", "/api/notes/n1", json_body={})
        assert isinstance(exc_info.value.__cause__, httpx.TooManyRedirects)

    async def test_decode_error_raised(
        self, api: respx.MockRouter, http_client: httpx.AsyncClient
    ) -> None:
        api.post("/api/notes").mock(return_value=httpx.Response(201, text="not json"))
        with pytest.raises(DecodeError):
            await Fetcher(http_client).request("POST", "/api/notes", json_body={})
