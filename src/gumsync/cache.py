"""In-memory query cache with optimistic mutations.

Every write to an entry goes through ``QueryCache._reconcile``, which either
returns the existing ``CacheEntry`` object untouched (nothing changed) or
stores a new one with the next version number. Consumers can therefore
memoise on entry identity.

Optimistic writes are kept per key as a stack of ``OptimisticPatch`` objects
in application order. All cache writes are synchronous, so on a single event
loop patches for a key are applied in submission order and a settle handler
never interleaves with another write. While a key has patches on its stack,
poll results for that key are deferred (the key is marked stale and the next
poll after settling replaces the entry unconditionally).
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import Any, TypeVar

import structlog

from gumsync.fingerprint import fingerprint
from gumsync.models.cache import CacheEntry, OptimisticPatch, ResourceKey, Transform

log = structlog.get_logger()

T = TypeVar("T")

EntryListener = Callable[[CacheEntry], None]
InvalidationListener = Callable[[ResourceKey], None]
SuccessTransform = Callable[[Any, Any], Any]


class QueryCache:
    """Mapping of ``ResourceKey`` to ``CacheEntry``, owned by one ``AppState``."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(UTC))
        self._entries: dict[ResourceKey, CacheEntry] = {}
        self._versions: dict[ResourceKey, int] = {}
        self._patches: dict[ResourceKey, list[OptimisticPatch]] = {}
        # version of the last entry written by the mutation layer, per key
        self._optimistic_versions: dict[ResourceKey, int] = {}
        self._stale: set[ResourceKey] = set()
        self._listeners: list[EntryListener] = []
        self._invalidation_listeners: list[InvalidationListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: ResourceKey) -> CacheEntry | None:
        return self._entries.get(key)

    def get_data(self, key: ResourceKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else default

    def is_stale(self, key: ResourceKey) -> bool:
        return key in self._stale

    def keys(self) -> list[ResourceKey]:
        return list(self._entries)

    def pending(self, key: ResourceKey) -> list[OptimisticPatch]:
        """Optimistic patches currently layered on ``key``, oldest first."""
        return list(self._patches.get(key, ()))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: EntryListener) -> Callable[[], None]:
        """Call ``listener`` with every new ``CacheEntry``. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: _discard(self._listeners, listener)

    def subscribe_invalidations(self, listener: InvalidationListener) -> Callable[[], None]:
        self._invalidation_listeners.append(listener)
        return lambda: _discard(self._invalidation_listeners, listener)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _reconcile(
        self, key: ResourceKey, data: Any, *, synced: bool, optimistic: bool
    ) -> CacheEntry:
        current = self._entries.get(key)
        digest = fingerprint(data)
        forced = synced and key in self._stale
        if (
            current is not None
            and not forced
            and current.fingerprint == digest
            and current.optimistic == optimistic
        ):
            return current

        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        if synced:
            synced_at = self._now()
            self._stale.discard(key)
        else:
            synced_at = current.synced_at if current is not None else None

        entry = CacheEntry(
            key=key,
            data=data,
            fingerprint=digest,
            version=version,
            synced_at=synced_at,
            optimistic=optimistic,
        )
        self._entries[key] = entry
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def apply_server_data(self, key: ResourceKey, data: Any) -> bool:
        """Store a payload fetched from the server. Returns True if the entry changed.

        Deferred while optimistic patches are pending on ``key``.
        """
        if self._patches.get(key):
            self._stale.add(key)
            log.debug(
                "server_data_deferred",
                key=str(key),
                pending=len(self._patches[key]),
            )
            return False
        before = self._entries.get(key)
        return self._reconcile(key, data, synced=True, optimistic=False) is not before

    def set_data(self, key: ResourceKey, data: Any) -> CacheEntry:
        """Seed or overwrite an entry outside the poll path (e.g. initial hydration)."""
        return self._reconcile(key, data, synced=True, optimistic=bool(self._patches.get(key)))

    def invalidate(self, key: ResourceKey) -> bool:
        """Mark ``key`` stale so the next server result replaces it unconditionally.

        Idempotent. Returns False when nothing is cached for ``key``.
        """
        if key not in self._entries:
            return False
        self._stale.add(key)
        for listener in list(self._invalidation_listeners):
            listener(key)
        return True

    def invalidate_matching(
        self, resource: str, identifier: str | None = None
    ) -> list[ResourceKey]:
        """Invalidate every cached key under ``resource`` (and ``identifier``, if given)."""
        matched = [key for key in self._entries if key.matches(resource, identifier)]
        for key in matched:
            self.invalidate(key)
        return matched

    def remove(self, key: ResourceKey) -> bool:
        """Evict ``key``. Entries with pending optimistic patches are kept."""
        if self._patches.get(key):
            return False
        self._stale.discard(key)
        self._optimistic_versions.pop(key, None)
        return self._entries.pop(key, None) is not None

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    async def mutate(
        self,
        key: ResourceKey,
        forward: Transform,
        request_fn: Callable[[], Awaitable[T]],
        *,
        on_success: SuccessTransform | None = None,
        invalidate: Iterable[ResourceKey] = (),
    ) -> T:
        """Apply ``forward`` to the cached data now, then run ``request_fn``.

        ``forward`` must return new data rather than modify its argument.
        On failure the write is rolled back and the exception re-raised. On
        success ``on_success(data, response)`` (if given) substitutes server
        values into the cached data, then ``key`` and every key in
        ``invalidate`` are marked stale.
        """
        patch = self._apply_patch(key, forward)
        try:
            response = await request_fn()
        except (Exception, asyncio.CancelledError):
            if patch is not None:
                self._rollback(patch)
            self._invalidate_all(key, invalidate)
            raise

        if patch is not None:
            self._settle(patch, response, on_success)
        self._invalidate_all(key, invalidate)
        return response

    def _apply_patch(self, key: ResourceKey, forward: Transform) -> OptimisticPatch | None:
        current = self._entries.get(key)
        if current is None:
            # Nothing to show optimistically; the request still runs.
            return None

        patch = OptimisticPatch(
            patch_id=uuid.uuid4().hex,
            key=key,
            forward=forward,
            snapshot=copy.deepcopy(current.data),
            created_at=self._now(),
        )
        stack = self._patches.setdefault(key, [])
        stack.append(patch)
        self._write_optimistic(key, forward(current.data))
        log.debug("optimistic_patch_applied", key=str(key), patch_id=patch.patch_id)
        return patch

    def _write_optimistic(self, key: ResourceKey, data: Any) -> CacheEntry:
        entry = self._reconcile(key, data, synced=False, optimistic=bool(self._patches.get(key)))
        self._optimistic_versions[key] = entry.version
        return entry

    def _rollback(self, patch: OptimisticPatch) -> None:
        key = patch.key
        stack = self._patches.get(key, [])
        if patch not in stack:
            return

        current = self._entries.get(key)
        if current is None or current.version != self._optimistic_versions.get(key):
            # The entry was replaced after the patch was applied; the snapshot
            # no longer describes what is on screen.
            stack.remove(patch)
            self._drop_settled(key)
            log.warning(
                "rollback_skipped_stale",
                key=str(key),
                patch_id=patch.patch_id,
                version=current.version if current is not None else None,
            )
            self._stale.add(key)
            return

        # Undo newer patches first, then the failed one: the result is the
        # failed patch's snapshot. Newer patches are then re-applied on top.
        index = stack.index(patch)
        newer = stack[index + 1 :]
        data = patch.snapshot
        del stack[index:]
        for redo in newer:
            redo.snapshot = copy.deepcopy(data)
            data = redo.forward(data)
            stack.append(redo)

        self._drop_settled(key)
        self._write_optimistic(key, data)
        log.info(
            "mutation_rolled_back",
            key=str(key),
            patch_id=patch.patch_id,
            reapplied=len(newer),
            pending_for=(self._now() - patch.created_at).total_seconds(),
        )

    def _settle(
        self,
        patch: OptimisticPatch,
        response: Any,
        on_success: SuccessTransform | None,
    ) -> None:
        key = patch.key
        current = self._entries.get(key)
        in_sync = current is not None and current.version == self._optimistic_versions.get(key)

        if on_success is not None and in_sync:
            applied = patch.forward

            def confirmed(data: Any) -> Any:
                return on_success(applied(data), response)

            patch.forward = confirmed
            self._write_optimistic(key, on_success(current.data, response))
            # newer patches roll back to their snapshot, which must carry the
            # server values too
            stack = self._patches[key]
            for newer in stack[stack.index(patch) + 1 :]:
                newer.snapshot = on_success(newer.snapshot, response)

        patch.settled = True
        self._drop_settled(key)
        if not self._patches.get(key) and in_sync:
            # clear the optimistic flag now that nothing is pending
            self._write_optimistic(key, self._entries[key].data)
        log.debug("mutation_settled", key=str(key), patch_id=patch.patch_id)

    def _drop_settled(self, key: ResourceKey) -> None:
        """Pop settled patches off the bottom of the stack."""
        stack = self._patches.get(key)
        if stack is None:
            return
        while stack and stack[0].settled:
            stack.pop(0)
        if not stack:
            del self._patches[key]

    def _invalidate_all(self, key: ResourceKey, extra: Iterable[ResourceKey]) -> None:
        self.invalidate(key)
        for other in extra:
            self.invalidate(other)


def _discard(items: list[Any], item: Any) -> None:
    if item in items:
        items.remove(item)
