"""Integration fixtures: a SyncClient wired against a respx-mocked Gumboard API.

Uses the production polling defaults (4 s base in these scenarios, 10 s
ceiling, 30 s idle threshold). Timers are real but every scenario completes
long before the first one fires; ticks are driven with ``poll_now`` and idle
time with the fake clock.
"""

from __future__ import annotations

import pytest

from gumsync.config import Settings
from tests.helpers import BASE_URL


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        api={"base_url": BASE_URL},
        polling={
            "base_interval": 4.0,
            "max_interval": 10.0,
            "activity_threshold": 30.0,
            "notes_interval": 4.0,
            "boards_interval": 4.0,
        },
    )
