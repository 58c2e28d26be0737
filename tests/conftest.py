"""Shared fixtures: fake clock, mocked Gumboard API and a wired SyncClient."""

from __future__ import annotations

import httpx
import pytest
import respx

from gumsync.activity import ActivityTracker
from gumsync.client import SyncClient
from gumsync.config import Settings
from gumsync.state import create_app_state
from tests.helpers import BASE_URL, FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def activity(clock: FakeClock) -> ActivityTracker:
    return ActivityTracker(clock=clock)


@pytest.fixture()
def settings() -> Settings:
    # Long intervals: timers never fire during a test, ticks are driven explicitly.
    return Settings(
        api={"base_url": BASE_URL},
        polling={
            "base_interval": 60.0,
            "max_interval": 120.0,
            "notes_interval": 60.0,
            "boards_interval": 60.0,
        },
    )


@pytest.fixture()
def api():
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        yield client


@pytest.fixture()
async def sync_client(
    settings: Settings, http_client: httpx.AsyncClient, activity: ActivityTracker
):
    client = SyncClient(create_app_state(settings, http_client, activity=activity))
    yield client
    await client.close()
