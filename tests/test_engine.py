"""Tests for the SearchEngine facade."""

import pytest

from contribux.common.errors import InvalidWeights, RepositoryNotFound
from contribux.search.engine import SearchEngine

from tests.factories import NOW, axis, make_opportunity, make_repository, make_user


@pytest.fixture
async def engine(store, search_config, metrics):
    repository = await store.add_repository(make_repository())
    await store.add_opportunity(make_opportunity(repository))
    await store.add_opportunity(make_opportunity(repository, title="Write onboarding guide", description_embedding=axis(2)))
    await store.add_user(make_user())
    return SearchEngine(store, search_config, metrics)


def _requests(engine, operation, status):
    return engine.metrics.registry.get_sample_value(
        "contribux_search_requests_total",
        {"operation": operation, "strategy": engine.store.strategy, "status": status},
    )


@pytest.mark.asyncio
async def test_defaults_come_from_config(engine):
    """Default threshold 0.6 keeps the phrase match and drops the unrelated title."""
    results = await engine.hybrid_search_opportunities("TypeScript type errors")

    assert len(results) == 1
    assert _requests(engine, "hybrid_search_opportunities", "success") == 1.0


@pytest.mark.asyncio
async def test_all_operations(engine):
    repositories = await engine.hybrid_search_repositories("test-repo", now=NOW)
    users = await engine.search_similar_users(axis(0))
    trending = await engine.get_trending_opportunities(now=NOW)
    health = await engine.get_repository_health_metrics(repositories[0].id, now=NOW)
    matches = await engine.find_matching_opportunities_for_user(users[0].id, similarity_threshold=0.0)

    assert len(repositories) == 1
    assert len(users) == 1
    assert len(trending) == 2
    assert health.total_opportunities == 2
    assert len(matches) == 2


@pytest.mark.asyncio
async def test_errors_are_recorded_and_raised(engine):
    with pytest.raises(InvalidWeights):
        await engine.hybrid_search_opportunities("anything", text_weight=0.0, vector_weight=0.0)
    with pytest.raises(RepositoryNotFound):
        await engine.get_repository_health_metrics(make_repository().id)

    assert _requests(engine, "hybrid_search_opportunities", "error") == 1.0
    assert _requests(engine, "get_repository_health_metrics", "error") == 1.0
