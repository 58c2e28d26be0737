from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class ResourceKey:
    """Identity of one cacheable unit of server data.

    ``params`` holds pagination/filter parameters as sorted ``(name, value)``
    string pairs so that equal parameter sets always hash the same.
    """

    resource: str
    identifier: str | None = None
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, resource: str, identifier: str | None = None, **params: object) -> ResourceKey:
        pairs = tuple(sorted((name, str(value)) for name, value in params.items()))
        return cls(resource=resource, identifier=identifier, params=pairs)

    @property
    def path(self) -> str:
        parts = [self.resource]
        if self.identifier is not None:
            parts.append(self.identifier)
        if self.params:
            parts.append("&".join(f"{name}={value}" for name, value in self.params))
        return "/".join(parts)

    def matches(self, resource: str, identifier: str | None = None) -> bool:
        """Prefix match: ``identifier=None`` matches every identifier."""
        if self.resource != resource:
            return False
        return identifier is None or self.identifier == identifier

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class CacheEntry:
    """Last-known payload for a key. Replaced, never mutated in place."""

    key: ResourceKey
    data: Any
    fingerprint: str
    version: int
    synced_at: datetime | None = None  # None while only optimistic data exists
    optimistic: bool = False


@dataclass
class OptimisticPatch:
    """A pending local mutation layered on top of a cache entry."""

    patch_id: str
    key: ResourceKey
    forward: Transform
    snapshot: Any  # deep copy of the entry data just before ``forward`` was applied
    settled: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
