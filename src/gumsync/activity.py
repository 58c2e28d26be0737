"""Tracks the last user interaction so polling can back off when idle."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

DEFAULT_ACTIVITY_EVENTS = frozenset({"mousedown", "keydown", "touchstart"})

ActivityListener = Callable[[float], None]


class ActivityTracker:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        events: Iterable[str] = DEFAULT_ACTIVITY_EVENTS,
    ) -> None:
        self._clock = clock
        self._events = frozenset(events)
        self._listeners: list[ActivityListener] = []
        self.last_activity_at = clock()

    @property
    def events(self) -> frozenset[str]:
        return self._events

    def record(self, event: str = "keydown") -> bool:
        """Register an interaction event. Returns False for non-designated events."""
        if event not in self._events:
            return False
        self.last_activity_at = self._clock()
        for listener in list(self._listeners):
            listener(self.last_activity_at)
        return True

    def idle_for(self, now: float | None = None) -> float:
        """Seconds since the last designated interaction."""
        if now is None:
            now = self._clock()
        return max(0.0, now - self.last_activity_at)

    def subscribe(self, listener: ActivityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
