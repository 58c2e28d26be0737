"""High-level entry point tying polling, the query cache and mutations together."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from gumsync.config import Settings
from gumsync.fetcher import build_http_client
from gumsync.logging_config import configure_logging
from gumsync.models.cache import ResourceKey, Transform
from gumsync.models.notes import BoardsPage, Bootstrap, InvitesPage, NotesPage
from gumsync.mutations import NoteMutations
from gumsync.resources import (
    BOARDS_URL,
    BOOTSTRAP_URL,
    DEFAULT_PAGE_SIZE,
    ORGANIZATION_INVITES_URL,
    boards_key,
    bootstrap_key,
    notes_key,
    notes_url,
    organization_invites_key,
)
from gumsync.state import AppState, create_app_state

if TYPE_CHECKING:
    from gumsync.cache import QueryCache
    from gumsync.polling import PollSession

log = structlog.get_logger()

T = TypeVar("T")


class SyncClient:
    def __init__(self, state: AppState) -> None:
        self.state = state
        self._unsubscribe = state.cache.subscribe_invalidations(state.engine.mark_stale)

    @property
    def cache(self) -> QueryCache:
        return self.state.cache

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def watch(
        self,
        key: ResourceKey,
        url: str,
        *,
        base_interval: float | None = None,
        model: type[BaseModel] | None = None,
    ) -> PollSession:
        """Poll ``url`` and feed every changed payload into the cache under ``key``.

        With ``model`` set, payloads that fail validation are logged and never
        reach the cache. The cache always stores the raw JSON.
        """
        cache = self.state.cache

        def on_update(body: Any) -> None:
            if model is not None:
                try:
                    model.model_validate(body)
                except ValidationError as exc:
                    log.warning(
                        "poll_payload_invalid",
                        key=str(key),
                        model=model.__name__,
                        errors=exc.error_count(),
                    )
                    return
            cache.apply_server_data(key, body)

        return self.state.engine.start(key, url, on_update, base_interval=base_interval)

    def watch_notes(self, board_id: str, *, take: int = DEFAULT_PAGE_SIZE) -> PollSession:
        return self.watch(
            notes_key(board_id, take),
            notes_url(board_id, take),
            base_interval=self.state.settings.polling.notes_interval,
            model=NotesPage,
        )

    def watch_boards(self) -> PollSession:
        return self.watch(
            boards_key(),
            BOARDS_URL,
            base_interval=self.state.settings.polling.boards_interval,
            model=BoardsPage,
        )

    def watch_bootstrap(self) -> PollSession:
        return self.watch(bootstrap_key(), BOOTSTRAP_URL, model=Bootstrap)

    def watch_organization_invites(self) -> PollSession:
        return self.watch(
            organization_invites_key(),
            ORGANIZATION_INVITES_URL,
            base_interval=self.state.settings.polling.invites_interval,
            model=InvitesPage,
        )

    def unwatch(self, key: ResourceKey, *, evict: bool = False) -> bool:
        stopped = self.state.engine.stop(key)
        if evict:
            self.state.cache.remove(key)
        return stopped

    def set_visible(self, visible: bool) -> None:
        self.state.engine.set_visible(visible)

    def record_activity(self, event: str = "keydown") -> bool:
        return self.state.activity.record(event)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def request(self, method: str, url: str, *, json_body: Any = None) -> Any:
        return await self.state.fetcher.request(method, url, json_body=json_body)

    async def mutate(
        self,
        key: ResourceKey,
        forward: Transform,
        request_fn: Callable[[], Awaitable[T]],
        *,
        on_success: Callable[[Any, Any], Any] | None = None,
        invalidate: Iterable[ResourceKey] = (),
    ) -> T:
        # an in-flight poll would only be deferred; drop it early
        self.state.engine.cancel_in_flight(key)
        return await self.state.cache.mutate(
            key, forward, request_fn, on_success=on_success, invalidate=invalidate
        )

    def invalidate(self, key: ResourceKey) -> bool:
        return self.state.cache.invalidate(key)

    def invalidate_matching(
        self, resource: str, identifier: str | None = None
    ) -> list[ResourceKey]:
        return self.state.cache.invalidate_matching(resource, identifier)

    def notes(self, board_id: str, *, take: int = DEFAULT_PAGE_SIZE) -> NoteMutations:
        return NoteMutations(self, board_id, take=take)

    async def close(self) -> None:
        self._unsubscribe()
        await self.state.engine.close()


@asynccontextmanager
async def open_sync_client(
    settings: Settings | None = None, *, setup_logging: bool = False
) -> AsyncIterator[SyncClient]:
    """Build every component at startup and tear them down on exit."""
    settings = settings or Settings()
    if setup_logging:
        configure_logging(settings.logging)

    async with build_http_client(settings.api) as http_client:
        client = SyncClient(create_app_state(settings, http_client))
        log.info("sync_client_started", base_url=settings.api.base_url)
        try:
            yield client
        finally:
            await client.close()
            log.info("sync_client_stopped")
