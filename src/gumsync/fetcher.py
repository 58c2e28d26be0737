"""HTTP access to the Gumboard API.

``Fetcher.fetch_resource`` is the conditional GET used by polling: it never
raises for transport, HTTP or decode failures and instead returns a typed
``FetchResult``. ``Fetcher.request`` is the mutation path and raises.

Cancelling the task that awaits either method aborts the request; the
resulting ``asyncio.CancelledError`` is always propagated.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

import httpx
import structlog

from gumsync.config import ApiSettings
from gumsync.errors import DecodeError, GumsyncError, HttpError, NetworkError

log = structlog.get_logger()

SESSION_COOKIE = "authjs.session-token"

POLL_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

FetchStatus = Literal["ok", "not_modified", "error"]


@dataclass(frozen=True)
class FetchResult:
    status: FetchStatus
    status_code: int | None = None
    body: Any = None
    etag: str | None = None
    error: GumsyncError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def not_modified(self) -> bool:
        return self.status == "not_modified"


def build_http_client(settings: ApiSettings | None = None) -> httpx.AsyncClient:
    """Create the shared AsyncClient used for both polling and mutations."""
    settings = settings or ApiSettings()
    cookies = {SESSION_COOKIE: settings.session_token} if settings.session_token else None
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout),
        headers={"Accept": "application/json"},
        cookies=cookies,
        follow_redirects=True,
    )


def _error_message(response: httpx.Response) -> str | None:
    """Pull the ``{"error": "..."}`` message out of an error response."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return None


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise DecodeError(
            f"Malformed JSON from {response.request.url}: {exc}",
            status_code=response.status_code,
        ) from exc


class Fetcher:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch_resource(self, url: str, *, etag: str | None = None) -> FetchResult:
        """Conditional GET of ``url``. Sends ``If-None-Match`` when ``etag`` is set."""
        headers = dict(POLL_HEADERS)
        if etag:
            headers["If-None-Match"] = etag

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.RequestError as exc:
            return FetchResult(status="error", error=NetworkError(f"{type(exc).__name__}: {exc}"))

        if response.status_code == 304:
            return FetchResult(
                status="not_modified",
                status_code=304,
                etag=response.headers.get("ETag", etag),
            )

        if not response.is_success:
            return FetchResult(
                status="error",
                status_code=response.status_code,
                error=HttpError(response.status_code, _error_message(response)),
            )

        try:
            body = _decode(response)
        except DecodeError as exc:
            return FetchResult(status="error", status_code=response.status_code, error=exc)

        return FetchResult(
            status="ok",
            status_code=response.status_code,
            body=body,
            etag=response.headers.get("ETag"),
        )

    async def request(self, method: str, url: str, *, json_body: Any = None) -> Any:
        """Send a mutation request and return the decoded JSON response.

        Raises:
            NetworkError: the request never reached the server.
            HttpError: non-2xx response; ``message`` carries the server's error text.
            DecodeError: the response body was not valid JSON.
        """
        content = json.dumps(json_body) if json_body is not None else None
        try:
            response = await self._client.request(
                method,
                url,
                content=content,
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            error = HttpError(response.status_code, _error_message(response))
            log.info(
                "request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
                message=error.message,
            )
            raise error

        return _decode(response)
