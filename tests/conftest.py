from __future__ import annotations

import pytest

from betterask.response_cache import GLOBAL_TAG_CACHE, ResponseCache
from tests._fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(ttl_seconds=600, clock=clock)


@pytest.fixture(autouse=True)
def _clear_global_cache():
    GLOBAL_TAG_CACHE.clear()
    yield
    GLOBAL_TAG_CACHE.clear()
