"""Hybrid ranking over opportunities, repositories and peer users.

Every function validates its weights and limit before reading candidates,
scores each candidate, keeps those at or above the threshold, sorts by
descending score with the record id as the final tie-break and truncates
to the limit. Repeated calls on unchanged data return the same order.
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

import structlog

from contribux.models import OpportunitySearchResult, RepositorySearchResult, UserSearchResult
from contribux.store.base import SearchStore

from .health import activity_score, health_score
from .hybrid import HybridScorer, validate_limit
from .lexical import lexical_score, opportunity_fields, repository_fields
from .similarity import VectorLike, ensure_dimension

logger = structlog.get_logger("search.ranking")

T = TypeVar("T")


def select_top(scored: Sequence[Tuple[float, T]], limit: int, tie_key: Callable[[T], tuple]) -> List[Tuple[float, T]]:
    """Sort ``(score, item)`` pairs best first and keep ``limit`` of them."""
    ordered = sorted(scored, key=lambda pair: (-pair[0],) + tie_key(pair[1]))
    return ordered[:limit]


async def hybrid_search_opportunities(
    store: SearchStore,
    query_text: Optional[str],
    query_vector: Optional[VectorLike] = None,
    text_weight: float = 0.3,
    vector_weight: float = 0.7,
    similarity_threshold: float = 0.6,
    limit: int = 20
) -> List[OpportunitySearchResult]:
    """Rank open opportunities against a text query and optional embedding.

    Parameters
    - store: an open ``SearchStore``
    - query_text: literal query text; empty scores every candidate 0.5
    - query_vector: optional query embedding of the store's dimension
    - text_weight / vector_weight: non-negative, not both zero
    - similarity_threshold: minimum relevance kept
    - limit: positive result cap

    Returns
    - results ordered by ``relevance_score`` desc, then id
    """
    scorer = HybridScorer(text_weight, vector_weight)
    validate_limit(limit)
    vector = None
    if query_vector is not None and scorer.uses_vector:
        vector = ensure_dimension(query_vector, store.vector_dimension)

    candidates = await store.fetch_opportunity_candidates(vector)
    scored = []
    for candidate in candidates:
        lexical = lexical_score(query_text, *opportunity_fields(candidate.record))
        relevance = scorer.score(lexical, candidate.vector_score)
        if relevance >= similarity_threshold:
            scored.append((relevance, candidate.record))

    top = select_top(scored, limit, lambda record: (str(record.id),))
    logger.info(
        "Ranked opportunities",
        candidates=len(candidates),
        matched=len(scored),
        returned=len(top),
        strategy=store.strategy,
    )
    return [OpportunitySearchResult.from_record(record, score) for score, record in top]


async def hybrid_search_repositories(
    store: SearchStore,
    query_text: Optional[str],
    query_vector: Optional[VectorLike] = None,
    text_weight: float = 0.3,
    vector_weight: float = 0.7,
    similarity_threshold: float = 0.6,
    limit: int = 20,
    now: Optional[datetime] = None
) -> List[RepositorySearchResult]:
    """Rank active repositories; ties prefer the healthier repository."""
    scorer = HybridScorer(text_weight, vector_weight)
    validate_limit(limit)
    vector = None
    if query_vector is not None and scorer.uses_vector:
        vector = ensure_dimension(query_vector, store.vector_dimension)

    candidates = await store.fetch_repository_candidates(vector)
    scored = []
    for candidate in candidates:
        lexical = lexical_score(query_text, *repository_fields(candidate.record))
        relevance = scorer.score(lexical, candidate.vector_score)
        if relevance >= similarity_threshold:
            scored.append((relevance, candidate.record))

    top = select_top(scored, limit, lambda record: (-health_score(record), str(record.id)))
    logger.info(
        "Ranked repositories",
        candidates=len(candidates),
        matched=len(scored),
        returned=len(top),
        strategy=store.strategy,
    )
    return [
        RepositorySearchResult.from_record(
            record,
            relevance_score=score,
            health_score=health_score(record),
            activity_score=activity_score(record, now),
        )
        for score, record in top
    ]


async def search_similar_users(
    store: SearchStore,
    query_vector: Optional[VectorLike],
    similarity_threshold: float = 0.7,
    limit: int = 10
) -> List[UserSearchResult]:
    """Rank users with a profile embedding by similarity to ``query_vector``.

    There is no lexical fallback: a missing vector fails with
    ``DimensionMismatch``.
    """
    validate_limit(limit)
    vector = ensure_dimension(query_vector, store.vector_dimension)

    candidates = await store.fetch_user_candidates(vector)
    scored = [
        (candidate.vector_score, candidate.record)
        for candidate in candidates
        if candidate.vector_score is not None and candidate.vector_score >= similarity_threshold
    ]

    top = select_top(scored, limit, lambda record: (str(record.id),))
    logger.info("Ranked users", candidates=len(candidates), returned=len(top), strategy=store.strategy)
    return [UserSearchResult.from_record(record, score) for score, record in top]
