"""Error taxonomy shared by the fetch client, the polling engine and mutations.

Polling never raises these to its consumers: a failed tick is logged and the
next tick retries. Mutation failures are raised to the caller after the
optimistic write has been rolled back.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    DECODE_ERROR = "DECODE_ERROR"


class GumsyncError(Exception):
    """Base class for every error surfaced by gumsync."""

    def __init__(self, code: ErrorCode, message: str, *, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }


class NetworkError(GumsyncError):
    """The request never reached the server."""

    def __init__(self, message: str, *, code: ErrorCode = ErrorCode.NETWORK_ERROR) -> None:
        super().__init__(code, message, recoverable=True)


class HttpError(GumsyncError):
    """The server answered with a status other than 2xx or 304."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        # 5xx and rate limiting go away on their own; other 4xx will not
        recoverable = status_code >= 500 or status_code == 429
        super().__init__(
            ErrorCode.HTTP_ERROR,
            message or f"HTTP {status_code}",
            recoverable=recoverable,
        )

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "status_code": self.status_code}


class DecodeError(GumsyncError):
    """The response body was not valid JSON."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(ErrorCode.DECODE_ERROR, message, recoverable=False)
