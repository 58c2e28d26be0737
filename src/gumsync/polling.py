"""Visibility-aware adaptive polling of ETag-conditional resources.

One ``PollSession`` per resource key. Each tick supersedes the previous one:
the older in-flight request is cancelled and, should its result still come
back, it is dropped because its sequence number is no longer the latest.

Everything runs on a single asyncio event loop; session state is only touched
from that loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from gumsync.config import PollingSettings
from gumsync.errors import NetworkError
from gumsync.fingerprint import fingerprint

if TYPE_CHECKING:
    from gumsync.activity import ActivityTracker
    from gumsync.fetcher import Fetcher, FetchResult
    from gumsync.models.cache import ResourceKey

log = structlog.get_logger()

UpdateCallback = Callable[[Any], None]


@dataclass
class PollSession:
    key: ResourceKey
    url: str
    base_interval: float
    interval: float
    on_update: UpdateCallback
    etag: str | None = None
    last_fingerprint: str | None = None
    last_sync: datetime | None = None
    # set by mark_stale: deliver the next 200 even if the fingerprint matches
    stale: bool = False
    seq: int = 0
    requests: int = 0
    updates: int = 0
    not_modified: int = 0
    failures: int = 0
    closed: bool = False
    in_flight: asyncio.Task[bool] | None = field(default=None, repr=False)
    timer: asyncio.Task[None] | None = field(default=None, repr=False)

    def stats(self) -> dict[str, object]:
        return {
            "key": str(self.key),
            "interval": self.interval,
            "requests": self.requests,
            "updates": self.updates,
            "not_modified": self.not_modified,
            "failures": self.failures,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
        }


class PollingEngine:
    def __init__(
        self,
        fetcher: Fetcher,
        activity: ActivityTracker,
        settings: PollingSettings | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._activity = activity
        self._settings = settings or PollingSettings()
        self._sessions: dict[ResourceKey, PollSession] = {}
        self._visible = True
        self._unsubscribe_activity = activity.subscribe(self._on_activity)

    @property
    def visible(self) -> bool:
        return self._visible

    def session(self, key: ResourceKey) -> PollSession | None:
        return self._sessions.get(key)

    def sessions(self) -> list[PollSession]:
        return list(self._sessions.values())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        key: ResourceKey,
        url: str,
        on_update: UpdateCallback,
        *,
        base_interval: float | None = None,
    ) -> PollSession:
        """Begin polling ``url`` for ``key``. Must be called from a running event loop.

        Fires one fetch immediately (when visible) and then one every
        ``interval`` seconds. An existing session for ``key`` is replaced.
        """
        if key in self._sessions:
            self.stop(key)

        base = base_interval if base_interval is not None else self._settings.base_interval
        session = PollSession(
            key=key,
            url=url,
            base_interval=base,
            interval=base,
            on_update=on_update,
        )
        self._sessions[key] = session
        log.debug("poll_session_started", key=str(key), url=url, interval=base)
        if self._visible:
            self._resume(session)
        return session

    def stop(self, key: ResourceKey) -> bool:
        """Cancel the timer and abort the in-flight request for ``key``."""
        session = self._sessions.pop(key, None)
        if session is None:
            return False
        session.closed = True
        self._pause(session)
        self._abort(session)
        log.debug("poll_session_stopped", **session.stats())
        return True

    async def close(self) -> None:
        """Stop every session and wait for their tasks to unwind."""
        tasks = [
            task
            for session in self._sessions.values()
            for task in (session.timer, session.in_flight)
            if task is not None
        ]
        for key in list(self._sessions):
            self.stop(key)
        self._unsubscribe_activity()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Visibility, activity and staleness
    # ------------------------------------------------------------------

    def set_visible(self, visible: bool) -> None:
        """Pause every session while hidden; refetch once and resume when shown."""
        if visible == self._visible:
            return
        self._visible = visible
        log.info("visibility_changed", visible=visible, sessions=len(self._sessions))
        for session in self._sessions.values():
            if visible:
                self._resume(session)
            else:
                self._pause(session)

    def _on_activity(self, _at: float) -> None:
        for session in self._sessions.values():
            if session.interval != session.base_interval:
                log.debug(
                    "poll_interval_reset",
                    key=str(session.key),
                    interval=session.base_interval,
                )
                session.interval = session.base_interval

    def mark_stale(self, key: ResourceKey) -> None:
        """Force the next tick for ``key`` to fetch and deliver a full payload."""
        session = self._sessions.get(key)
        if session is None:
            return
        session.etag = None
        session.last_fingerprint = None
        session.stale = True

    def cancel_in_flight(self, key: ResourceKey) -> bool:
        """Abort the outstanding request for ``key`` but keep the schedule."""
        session = self._sessions.get(key)
        if session is None:
            return False
        return self._abort(session)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def poll_now(self, key: ResourceKey) -> bool:
        """Run one tick for ``key`` and wait for it. Returns True if ``on_update`` ran.

        Does nothing while hidden.
        """
        session = self._sessions[key]
        if not self._visible:
            log.debug("poll_skipped_hidden", key=str(key))
            return False
        task = self._tick(session)
        await asyncio.wait({task})
        return False if task.cancelled() else task.result()

    def _resume(self, session: PollSession) -> None:
        self._tick(session)
        session.timer = asyncio.create_task(self._run(session), name=f"poll:{session.key}")

    def _pause(self, session: PollSession) -> None:
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        # no response is delivered while hidden
        self._abort(session)

    def _abort(self, session: PollSession) -> bool:
        task = session.in_flight
        session.in_flight = None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _run(self, session: PollSession) -> None:
        while True:
            await asyncio.sleep(session.interval)
            self._tick(session)

    def _tick(self, session: PollSession) -> asyncio.Task[bool]:
        self._abort(session)
        session.seq += 1
        session.requests += 1
        task = asyncio.create_task(self._fetch(session, session.seq))
        session.in_flight = task
        return task

    async def _fetch(self, session: PollSession, seq: int) -> bool:
        try:
            result = await self._fetcher.fetch_resource(session.url, etag=session.etag)
        except Exception:
            if not self._is_current(session, seq):
                return False
            session.in_flight = None
            session.failures += 1
            log.error("poll_fetch_failed", key=str(session.key), seq=seq, exc_info=True)
            return False
        if not self._is_current(session, seq):
            log.debug("poll_result_superseded", key=str(session.key), seq=seq, latest=session.seq)
            return False
        session.in_flight = None
        return self._handle(session, result)

    def _is_current(self, session: PollSession, seq: int) -> bool:
        # aborted requests are detached from the session before they are cancelled
        return (
            not session.closed
            and seq == session.seq
            and session.in_flight is asyncio.current_task()
        )

    def _handle(self, session: PollSession, result: FetchResult) -> bool:
        if result.status == "error":
            session.failures += 1
            error = result.error
            if isinstance(error, NetworkError):
                log.debug("poll_network_error", key=str(session.key), error=str(error))
            else:
                log.warning(
                    "poll_error",
                    key=str(session.key),
                    status_code=result.status_code,
                    error=str(error),
                )
            return False

        if result.status == "not_modified":
            session.not_modified += 1
            self._apply_backoff(session)
            return False

        if result.etag:
            session.etag = result.etag
        digest = fingerprint(result.body)
        changed = session.stale or digest != session.last_fingerprint
        self._apply_backoff(session)
        if not changed:
            return False

        session.last_fingerprint = digest
        session.stale = False
        session.last_sync = datetime.now(UTC)
        session.updates += 1
        try:
            session.on_update(result.body)
        except Exception:
            log.error("poll_update_callback_failed", key=str(session.key), exc_info=True)
        return True

    def _apply_backoff(self, session: PollSession) -> None:
        settings = self._settings
        if self._activity.idle_for() <= settings.activity_threshold:
            return
        ceiling = max(settings.max_interval, session.base_interval)
        interval = min(session.interval * settings.backoff_multiplier, ceiling)
        if interval != session.interval:
            log.debug(
                "poll_backoff",
                key=str(session.key),
                interval=interval,
                previous=session.interval,
            )
            session.interval = interval
