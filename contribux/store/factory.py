"""Store factory and strategy selection.

Centralizes creation of concrete ``SearchStore`` backends so callers don't
depend on implementation details.

Strategy resolution
- An explicit argument wins, then ``CONTRIBUX_DB_STRATEGY``, then ``auto``
- ``auto`` tries postgres, embedded and memory in that order
- With fallback enabled, a strategy that fails to initialise hands over to
  the next one in that order
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, List, Optional, Union

import structlog

from contribux.common.config import StoreConfig
from contribux.common.metrics import SearchMetrics, get_search_metrics

from .base import DataStoreConnectionError, SearchStore
from .embedded import EmbeddedStore
from .memory import MemoryDatabase, MemoryStore
from .postgres import PostgresStore

logger = structlog.get_logger("store.factory")


class StoreStrategy(Enum):
    """Supported store strategies."""
    POSTGRES = "postgres"
    EMBEDDED = "embedded"
    MEMORY = "memory"
    AUTO = "auto"


FALLBACK_ORDER = (StoreStrategy.POSTGRES, StoreStrategy.EMBEDDED, StoreStrategy.MEMORY)


class StoreFactory:
    """Factory for creating store instances."""

    @staticmethod
    def create(
        strategy: StoreStrategy,
        config: StoreConfig,
        database: Optional[MemoryDatabase] = None,
        **kwargs: Any
    ) -> SearchStore:
        """Create an unopened store.

        Parameters
        - strategy: a concrete ``StoreStrategy`` (not ``AUTO``)
        - config: store settings (DSN, SQLite path, vector dimension)
        - database: shared tables for the memory strategy
        - kwargs: overrides forwarded to the implementation
        """
        common = {
            "vector_dimension": kwargs.pop("vector_dimension", config.vector_dimension),
            "development": config.is_development,
        }

        if strategy == StoreStrategy.POSTGRES:
            return PostgresStore(
                dsn=kwargs.pop("dsn", config.database_url),
                command_timeout=config.db_command_timeout,
                connect_timeout=config.db_connect_timeout,
                **common,
                **kwargs
            )

        elif strategy == StoreStrategy.EMBEDDED:
            return EmbeddedStore(path=kwargs.pop("path", config.sqlite_path), **common, **kwargs)

        elif strategy == StoreStrategy.MEMORY:
            return MemoryStore(database=database, **common, **kwargs)

        else:
            raise ValueError(f"Unsupported store strategy: {strategy}")


def resolve_strategy(
    strategy: Optional[Union[str, StoreStrategy]] = None,
    config: Optional[StoreConfig] = None
) -> StoreStrategy:
    """Pick the strategy: explicit argument, then configuration, then ``auto``."""
    if strategy is None:
        strategy = config.db_strategy if config is not None else StoreStrategy.AUTO
    if isinstance(strategy, StoreStrategy):
        return strategy
    try:
        return StoreStrategy(str(strategy).strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported store strategy: {strategy}")


def candidate_strategies(strategy: StoreStrategy, fallback: bool) -> List[StoreStrategy]:
    if strategy == StoreStrategy.AUTO:
        return list(FALLBACK_ORDER)
    if not fallback:
        return [strategy]
    return list(FALLBACK_ORDER[FALLBACK_ORDER.index(strategy):])


async def open_store(
    strategy: Optional[Union[str, StoreStrategy]] = None,
    config: Optional[StoreConfig] = None,
    metrics: Optional[SearchMetrics] = None,
    database: Optional[MemoryDatabase] = None,
    **kwargs: Any
) -> SearchStore:
    """Open a store, falling back to the next strategy when one is unavailable.

    Returns
    - an open ``SearchStore``; the caller owns it and must call ``cleanup``
    """
    config = config or StoreConfig()
    metrics = metrics or get_search_metrics()
    requested = resolve_strategy(strategy, config)
    candidates = candidate_strategies(requested, config.db_fallback)

    last_error: Optional[DataStoreConnectionError] = None
    for index, candidate in enumerate(candidates):
        store = StoreFactory.create(candidate, config, database=database, **kwargs)
        try:
            await store.open()
        except DataStoreConnectionError as e:
            await store.cleanup()
            last_error = e
            if index + 1 < len(candidates):
                following = candidates[index + 1]
                logger.warning(
                    "Store strategy unavailable, falling back",
                    strategy=candidate.value,
                    fallback=following.value,
                    error=str(e),
                )
                metrics.record_fallback(candidate.value, following.value)
            continue
        return store

    logger.error("No store strategy could be opened", requested=requested.value, error=str(last_error))
    raise DataStoreConnectionError(f"Unable to open a store for strategy {requested.value}: {last_error}")


@asynccontextmanager
async def connect(
    strategy: Optional[Union[str, StoreStrategy]] = None,
    config: Optional[StoreConfig] = None,
    **kwargs: Any
) -> AsyncIterator[SearchStore]:
    """Open a store for the duration of a block and always clean it up."""
    store = await open_store(strategy, config, **kwargs)
    try:
        yield store
    finally:
        await store.cleanup()
