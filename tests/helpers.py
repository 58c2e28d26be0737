"""Test helpers shared across the unit and integration suites."""

from __future__ import annotations

import asyncio

BASE_URL = "http://gumboard.test"


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def spin(times: int = 10) -> None:
    """Let scheduled tasks run up to their next real suspension point."""
    for _ in range(times):
        await asyncio.sleep(0)


async def settle(session) -> None:
    """Wait for the session's in-flight request, if any, to finish."""
    await spin()
    if session.in_flight is not None:
        await asyncio.wait({session.in_flight})


def note(note_id: str, content: str = "", **extra: object) -> dict[str, object]:
    return {
        "id": note_id,
        "content": content or f"content of {note_id}",
        "color": "#fef3c7",
        "done": False,
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-01T00:00:00.000Z",
        "user": {"id": "u1", "name": "Ada", "email": "ada@example.com"},
        "boardId": "b1",
        **extra,
    }
