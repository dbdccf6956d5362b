"""Tests for the store strategies, factory and manager."""

import pytest

from contribux.common.config import StoreConfig
from contribux.common.errors import DimensionMismatch
from contribux.models import ContributionType, OpportunityStatus, RepositoryStatus
from contribux.store.base import DataStoreConnectionError, DataStoreQueryError
from contribux.store.embedded import EmbeddedStore
from contribux.store.factory import (
    StoreFactory,
    StoreStrategy,
    candidate_strategies,
    connect,
    open_store,
    resolve_strategy,
)
from contribux.store.manager import StoreManager
from contribux.store.memory import MemoryDatabase, MemoryStore
from contribux.store.postgres import PostgresStore

from tests.factories import (
    DIMENSION,
    make_opportunity,
    make_outcome,
    make_preferences,
    make_repository,
    make_user,
)


def test_store_creation(store_config):
    """The factory builds the right implementation for each strategy."""
    assert isinstance(StoreFactory.create(StoreStrategy.POSTGRES, store_config), PostgresStore)
    assert isinstance(StoreFactory.create(StoreStrategy.EMBEDDED, store_config), EmbeddedStore)
    memory = StoreFactory.create(StoreStrategy.MEMORY, store_config)
    assert isinstance(memory, MemoryStore)
    assert memory.vector_dimension == DIMENSION

    with pytest.raises(ValueError):
        StoreFactory.create(StoreStrategy.AUTO, store_config)


def test_strategy_resolution(monkeypatch):
    """Explicit argument beats configuration, which beats the default."""
    monkeypatch.delenv("CONTRIBUX_DB_STRATEGY", raising=False)
    assert resolve_strategy(None, StoreConfig()) == StoreStrategy.AUTO

    monkeypatch.setenv("CONTRIBUX_DB_STRATEGY", "memory")
    config = StoreConfig()
    assert resolve_strategy(None, config) == StoreStrategy.MEMORY
    assert resolve_strategy("embedded", config) == StoreStrategy.EMBEDDED
    assert resolve_strategy(StoreStrategy.POSTGRES, config) == StoreStrategy.POSTGRES

    with pytest.raises(ValueError, match="Unsupported store strategy"):
        resolve_strategy("oracle", config)


def test_candidate_strategies():
    assert candidate_strategies(StoreStrategy.AUTO, False) == [
        StoreStrategy.POSTGRES, StoreStrategy.EMBEDDED, StoreStrategy.MEMORY,
    ]
    assert candidate_strategies(StoreStrategy.EMBEDDED, True) == [StoreStrategy.EMBEDDED, StoreStrategy.MEMORY]
    assert candidate_strategies(StoreStrategy.POSTGRES, False) == [StoreStrategy.POSTGRES]


@pytest.mark.asyncio
async def test_fallback_when_postgres_unavailable(metrics):
    """Without a DSN the postgres strategy hands over to the embedded one."""
    config = StoreConfig(vector_dimension=DIMENSION, database_url=None, db_fallback=True)

    store = await open_store("postgres", config, metrics=metrics)
    try:
        assert store.strategy == "embedded"
        assert await store.health_check()
    finally:
        await store.cleanup()

    fallbacks = metrics.registry.get_sample_value(
        "contribux_store_fallbacks_total",
        {"from_strategy": "postgres", "to_strategy": "embedded"},
    )
    assert fallbacks == 1.0


@pytest.mark.asyncio
async def test_fallback_reaches_memory(metrics, tmp_path):
    config = StoreConfig(
        vector_dimension=DIMENSION,
        sqlite_path=str(tmp_path / "missing" / "search.db"),
        db_fallback=True,
    )

    store = await open_store("embedded", config, metrics=metrics)
    try:
        assert store.strategy == "memory"
    finally:
        await store.cleanup()


@pytest.mark.asyncio
async def test_no_fallback_raises(metrics):
    config = StoreConfig(vector_dimension=DIMENSION, database_url=None, db_fallback=False)
    with pytest.raises(DataStoreConnectionError):
        await open_store("postgres", config, metrics=metrics)


@pytest.mark.asyncio
async def test_cleanup_is_idempotent(store):
    await store.cleanup()
    await store.cleanup()
    assert not store.is_open
    assert not await store.health_check()


@pytest.mark.asyncio
async def test_cleanup_without_open(store_config):
    """Cleanup is safe on stores that never opened or failed to open."""
    never_opened = StoreFactory.create(StoreStrategy.EMBEDDED, store_config)
    await never_opened.cleanup()

    unreachable = PostgresStore(dsn=None, vector_dimension=DIMENSION)
    with pytest.raises(DataStoreConnectionError):
        await unreachable.open()
    await unreachable.cleanup()
    await unreachable.cleanup()


@pytest.mark.asyncio
async def test_closed_store_rejects_calls(store):
    await store.cleanup()
    with pytest.raises(DataStoreConnectionError):
        await store.get_user(make_user().id)
    with pytest.raises(DataStoreConnectionError):
        await store.open()


@pytest.mark.asyncio
async def test_memory_rollback_isolation(store_config):
    """Writes made through one connection are gone once it is cleaned up."""
    database = MemoryDatabase()
    repository = make_repository()

    async with StoreFactory.create(StoreStrategy.MEMORY, store_config, database=database) as first:
        await first.add_repository(repository)
        assert await first.get_repository(repository.id) == repository

    async with StoreFactory.create(StoreStrategy.MEMORY, store_config, database=database) as second:
        assert await second.get_repository(repository.id) is None


@pytest.mark.asyncio
async def test_embedded_rollback_isolation(store_config, tmp_path):
    """Uncommitted writes are invisible to other connections and undone on cleanup."""
    path = str(tmp_path / "search.db")
    repository = make_repository()

    reader = EmbeddedStore(path=path, vector_dimension=DIMENSION)
    writer = EmbeddedStore(path=path, vector_dimension=DIMENSION)
    await reader.open()
    await writer.open()
    try:
        await writer.add_repository(repository)
        assert await writer.get_repository(repository.id) == repository
        assert await reader.get_repository(repository.id) is None
    finally:
        await reader.cleanup()
        await writer.cleanup()

    async with EmbeddedStore(path=path, vector_dimension=DIMENSION) as later:
        assert await later.get_repository(repository.id) is None


@pytest.mark.asyncio
async def test_records_round_trip(store):
    repository = await store.add_repository(make_repository())
    user = await store.add_user(make_user())

    assert await store.get_repository(repository.id) == repository
    assert await store.get_user(user.id) == user
    assert await store.get_repository(make_repository().id) is None


@pytest.mark.asyncio
async def test_preferences_are_replaced(store):
    user = await store.add_user(make_user())
    await store.set_user_preferences(make_preferences(user, max_estimated_hours=5))
    await store.set_user_preferences(make_preferences(
        user, preferred_contribution_types=[ContributionType.TEST], max_estimated_hours=10,
    ))

    preferences = await store.get_user_preferences(user.id)
    assert preferences.max_estimated_hours == 10
    assert preferences.preferred_contribution_types == [ContributionType.TEST]


@pytest.mark.asyncio
async def test_write_validates_dimension(store):
    with pytest.raises(DimensionMismatch):
        await store.add_repository(make_repository(embedding=[0.1, 0.2, 0.3]))


@pytest.mark.asyncio
async def test_duplicate_id_is_query_error(store):
    repository = await store.add_repository(make_repository())
    with pytest.raises(DataStoreQueryError):
        await store.add_repository(repository)
    # the store stays usable after a failed statement
    assert await store.get_repository(repository.id) == repository


@pytest.mark.asyncio
async def test_unique_keys_are_enforced(store):
    """Every strategy rejects duplicate github ids, usernames and outcome ids."""
    repository = await store.add_repository(make_repository(github_id=7))
    with pytest.raises(DataStoreQueryError):
        await store.add_repository(make_repository(github_id=7, name="copy", full_name="acme/copy"))

    user = await store.add_user(make_user(github_username="dup"))
    with pytest.raises(DataStoreQueryError):
        await store.add_user(make_user(github_username="dup", email="other@example.com"))

    opportunity = await store.add_opportunity(make_opportunity(repository))
    outcome = await store.add_contribution_outcome(make_outcome(user, opportunity))
    with pytest.raises(DataStoreQueryError):
        await store.add_contribution_outcome(outcome)

    assert await store.get_user(user.id) == user
    assert len(await store.fetch_repository_outcomes(repository.id)) == 1


@pytest.mark.asyncio
async def test_candidates_exclude_closed_and_inactive(store):
    active = await store.add_repository(make_repository())
    await store.add_repository(make_repository(github_id=2, full_name="acme/old", status=RepositoryStatus.ARCHIVED))
    open_one = await store.add_opportunity(make_opportunity(active))
    await store.add_opportunity(make_opportunity(active, status=OpportunityStatus.STALE))

    opportunities = await store.fetch_opportunity_candidates()
    repositories = await store.fetch_repository_candidates()

    assert [c.record.id for c in opportunities] == [open_one.id]
    assert opportunities[0].repository_language == "TypeScript"
    assert opportunities[0].vector_score is None
    assert [c.record.id for c in repositories] == [active.id]


@pytest.mark.asyncio
async def test_connect_context_manager(store_config):
    async with connect("memory", store_config) as store:
        assert store.is_open
    assert not store.is_open


@pytest.mark.asyncio
async def test_store_manager(store_config, metrics):
    """One store per id, released individually or all at once."""
    manager = StoreManager(store_config, metrics=metrics)

    first = await manager.acquire("test-1", "memory")
    assert await manager.acquire("test-1", "memory") is first
    second = await manager.acquire("test-2", "embedded")
    assert second is not first

    assert manager.stats() == {"total": 2, "by_strategy": {"memory": 1, "embedded": 1}}
    assert metrics.registry.get_sample_value("contribux_store_connections_active", {"strategy": "memory"}) == 1.0

    await manager.release("test-1")
    await manager.release("unknown")
    assert not first.is_open
    assert manager.stats()["total"] == 1

    await manager.cleanup_all()
    assert not second.is_open
    assert manager.stats() == {"total": 0, "by_strategy": {}}
    assert metrics.registry.get_sample_value("contribux_store_connections_active", {"strategy": "embedded"}) == 0.0


@pytest.mark.asyncio
async def test_store_manager_replaces_closed_store(store_config, metrics):
    """A store cleaned up by its holder is reopened without inflating the connection gauge."""
    manager = StoreManager(store_config, metrics=metrics)

    first = await manager.acquire("test-1", "memory")
    await first.cleanup()
    second = await manager.acquire("test-1", "memory")

    assert second is not first
    assert second.is_open
    assert manager.stats() == {"total": 1, "by_strategy": {"memory": 1}}
    assert metrics.registry.get_sample_value("contribux_store_connections_active", {"strategy": "memory"}) == 1.0

    await manager.cleanup_all()
    assert metrics.registry.get_sample_value("contribux_store_connections_active", {"strategy": "memory"}) == 0.0
