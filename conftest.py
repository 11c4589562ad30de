"""Shared pytest fixtures."""

import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    # Feed snapshot, lifecycle lookups and throttle counters all live here.
    cache.clear()
    yield
    cache.clear()
