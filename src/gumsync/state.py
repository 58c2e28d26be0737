"""Application state: the single owner of every sync component.

Built once at startup by ``create_app_state`` and passed explicitly to
consumers; nothing in gumsync is reachable through module globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from gumsync.activity import ActivityTracker
from gumsync.cache import QueryCache
from gumsync.fetcher import Fetcher
from gumsync.polling import PollingEngine

if TYPE_CHECKING:
    import httpx

    from gumsync.config import Settings


@dataclass
class AppState:
    settings: Settings
    http_client: httpx.AsyncClient
    fetcher: Fetcher
    cache: QueryCache
    activity: ActivityTracker
    engine: PollingEngine


def create_app_state(
    settings: Settings,
    http_client: httpx.AsyncClient,
    *,
    activity: ActivityTracker | None = None,
) -> AppState:
    fetcher = Fetcher(http_client)
    activity = activity or ActivityTracker()
    return AppState(
        settings=settings,
        http_client=http_client,
        fetcher=fetcher,
        cache=QueryCache(),
        activity=activity,
        engine=PollingEngine(fetcher, activity, settings.polling),
    )
