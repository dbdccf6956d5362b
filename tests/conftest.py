"""Shared fixtures."""

import pytest
from prometheus_client import CollectorRegistry

from contribux.common.config import SearchConfig, StoreConfig
from contribux.common.metrics import SearchMetrics
from contribux.store.factory import open_store

from tests.factories import DIMENSION


@pytest.fixture
def store_config():
    """Store settings for unit tests; no fallback so each strategy is exercised."""
    return StoreConfig(vector_dimension=DIMENSION, db_fallback=False, env="test")


@pytest.fixture
def search_config():
    return SearchConfig(vector_dimension=DIMENSION, db_fallback=False, env="test")


@pytest.fixture
def metrics():
    return SearchMetrics("test-service", registry=CollectorRegistry())


@pytest.fixture(params=["embedded", "memory"])
async def store(request, store_config, metrics):
    """An open store per strategy, rolled back after the test."""
    store = await open_store(request.param, store_config, metrics=metrics)
    yield store
    await store.cleanup()
