"""Registry of open stores keyed by caller-supplied ids.

Lets test suites and workers hand out one store per id, reuse it on repeat
requests and release everything in one call.
"""

import asyncio
from collections import Counter
from typing import Any, Dict, Optional, Union

import structlog

from contribux.common.config import StoreConfig
from contribux.common.metrics import SearchMetrics, get_search_metrics

from .base import SearchStore
from .factory import StoreStrategy, open_store
from .memory import MemoryDatabase

logger = structlog.get_logger("store.manager")


class StoreManager:
    """Tracks open stores by id."""

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        metrics: Optional[SearchMetrics] = None,
        database: Optional[MemoryDatabase] = None
    ):
        self.config = config or StoreConfig()
        self.metrics = metrics or get_search_metrics()
        self.database = database
        self._stores: Dict[str, SearchStore] = {}
        self._lock = asyncio.Lock()

    async def acquire(
        self,
        store_id: str,
        strategy: Optional[Union[str, StoreStrategy]] = None,
        **kwargs: Any
    ) -> SearchStore:
        """Return the store registered under ``store_id``, opening one if needed."""
        async with self._lock:
            store = self._stores.get(store_id)
            if store is not None:
                if store.is_open:
                    return store
                # closed outside the manager
                self.metrics.connection_closed(store.strategy)
            store = await open_store(
                strategy,
                self.config,
                metrics=self.metrics,
                database=self.database,
                **kwargs
            )
            self._stores[store_id] = store
            self.metrics.connection_opened(store.strategy)
            logger.info("Store acquired", store_id=store_id, strategy=store.strategy)
            return store

    async def release(self, store_id: str) -> None:
        """Clean up and forget one store; unknown ids are ignored."""
        async with self._lock:
            store = self._stores.pop(store_id, None)
        if store is None:
            return
        await store.cleanup()
        self.metrics.connection_closed(store.strategy)
        logger.info("Store released", store_id=store_id, strategy=store.strategy)

    async def cleanup_all(self) -> None:
        async with self._lock:
            stores = list(self._stores.items())
            self._stores.clear()
        for store_id, store in stores:
            await store.cleanup()
            self.metrics.connection_closed(store.strategy)
        logger.info("All stores released", count=len(stores))

    def stats(self) -> Dict[str, Any]:
        """Number of registered stores, in total and per strategy."""
        return {
            "total": len(self._stores),
            "by_strategy": dict(Counter(store.strategy for store in self._stores.values())),
        }


_store_manager: Optional[StoreManager] = None


def get_store_manager() -> StoreManager:
    """Get the process-wide store manager."""
    global _store_manager
    if _store_manager is None:
        _store_manager = StoreManager()
    return _store_manager
