"""Search engine facade.

Binds the ranking and auxiliary functions to one open store, fills in
defaults from ``SearchConfig`` and records a log line and metrics for each
call.
"""

import time
from datetime import datetime
from typing import Any, Awaitable, List, Optional, TypeVar

import structlog

from contribux.common.config import SearchConfig
from contribux.common.metrics import SearchMetrics, get_search_metrics
from contribux.models import (
    OpportunityMatch,
    OpportunitySearchResult,
    RepositoryHealthMetrics,
    RepositorySearchResult,
    TrendingOpportunity,
    UserSearchResult,
)
from contribux.store.base import SearchStore

from . import auxiliary, ranking
from .similarity import VectorLike

logger = structlog.get_logger("search.engine")

T = TypeVar("T")


def _pick(value: Optional[T], default: T) -> T:
    return default if value is None else value


class SearchEngine:
    """Ranking and scoring calls against one store.

    Parameters
    - store: an open ``SearchStore``; the engine never closes it
    - config: defaults for weights, thresholds and limits
    - metrics: collector for call counts and latency
    """

    def __init__(
        self,
        store: SearchStore,
        config: Optional[SearchConfig] = None,
        metrics: Optional[SearchMetrics] = None
    ):
        self.store = store
        self.config = config or SearchConfig()
        self.metrics = metrics or get_search_metrics()

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        start = time.perf_counter()
        try:
            result = await call
        except Exception as e:
            duration = time.perf_counter() - start
            self.metrics.record_search(operation, self.store.strategy, "error", duration)
            logger.warning(
                "Search call failed",
                operation=operation,
                strategy=self.store.strategy,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        duration = time.perf_counter() - start
        count = len(result) if isinstance(result, list) else None
        self.metrics.record_search(operation, self.store.strategy, "success", duration, count)
        logger.info(
            "Search call completed",
            operation=operation,
            strategy=self.store.strategy,
            results=count,
            duration_ms=round(duration * 1000, 3),
        )
        return result

    async def hybrid_search_opportunities(
        self,
        query_text: Optional[str] = None,
        query_vector: Optional[VectorLike] = None,
        text_weight: Optional[float] = None,
        vector_weight: Optional[float] = None,
        similarity_threshold: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[OpportunitySearchResult]:
        return await self._run("hybrid_search_opportunities", ranking.hybrid_search_opportunities(
            self.store,
            query_text,
            query_vector,
            text_weight=_pick(text_weight, self.config.text_weight),
            vector_weight=_pick(vector_weight, self.config.vector_weight),
            similarity_threshold=_pick(similarity_threshold, self.config.similarity_threshold),
            limit=_pick(limit, self.config.result_limit),
        ))

    async def hybrid_search_repositories(
        self,
        query_text: Optional[str] = None,
        query_vector: Optional[VectorLike] = None,
        text_weight: Optional[float] = None,
        vector_weight: Optional[float] = None,
        similarity_threshold: Optional[float] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[RepositorySearchResult]:
        return await self._run("hybrid_search_repositories", ranking.hybrid_search_repositories(
            self.store,
            query_text,
            query_vector,
            text_weight=_pick(text_weight, self.config.text_weight),
            vector_weight=_pick(vector_weight, self.config.vector_weight),
            similarity_threshold=_pick(similarity_threshold, self.config.similarity_threshold),
            limit=_pick(limit, self.config.result_limit),
            now=now,
        ))

    async def search_similar_users(
        self,
        query_vector: Optional[VectorLike],
        similarity_threshold: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[UserSearchResult]:
        return await self._run("search_similar_users", ranking.search_similar_users(
            self.store,
            query_vector,
            similarity_threshold=_pick(similarity_threshold, self.config.user_similarity_threshold),
            limit=_pick(limit, self.config.user_result_limit),
        ))

    async def get_trending_opportunities(
        self,
        time_window_hours: Optional[int] = None,
        min_engagement: Optional[int] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[TrendingOpportunity]:
        return await self._run("get_trending_opportunities", auxiliary.get_trending_opportunities(
            self.store,
            time_window_hours=_pick(time_window_hours, self.config.trending_window_hours),
            min_engagement=_pick(min_engagement, self.config.trending_min_engagement),
            limit=_pick(limit, self.config.result_limit),
            now=now,
        ))

    async def get_repository_health_metrics(
        self,
        repository_id: Any,
        now: Optional[datetime] = None
    ) -> RepositoryHealthMetrics:
        return await self._run(
            "get_repository_health_metrics",
            auxiliary.get_repository_health_metrics(self.store, repository_id, now=now),
        )

    async def find_matching_opportunities_for_user(
        self,
        user_id: Any,
        similarity_threshold: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[OpportunityMatch]:
        return await self._run("find_matching_opportunities_for_user", auxiliary.find_matching_opportunities_for_user(
            self.store,
            user_id,
            similarity_threshold=_pick(similarity_threshold, self.config.match_threshold),
            limit=_pick(limit, self.config.match_limit),
        ))
