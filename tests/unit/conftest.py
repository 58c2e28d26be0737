"""Unit-specific fixtures (no network beyond respx mocks)."""

from __future__ import annotations

import pytest

from gumsync.cache import QueryCache


@pytest.fixture()
def cache() -> QueryCache:
    return QueryCache()
