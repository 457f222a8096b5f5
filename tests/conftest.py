from __future__ import annotations

import pytest

from tableside.cache import QueryCache
from tests.fakes import FakeApi, FakeClock


@pytest.fixture()
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(clock=clock)
