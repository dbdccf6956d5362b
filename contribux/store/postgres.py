"""PostgreSQL/pgvector strategy.

Similarity is computed natively with the ``<=>`` cosine-distance operator
and converted to ``1 - distance``. The store holds one connection with an
open transaction; statements on it are serialised with a lock because an
asyncpg connection runs one operation at a time.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import asyncpg
import numpy as np
import structlog
from asyncpg import Connection
from asyncpg.transaction import Transaction
from pgvector.asyncpg import register_vector

from contribux.models import EMBEDDING_FIELDS

from .base import DataStoreConnectionError, DataStoreQueryError
from .sql import SQLSearchStore

logger = structlog.get_logger("store.postgres")


def schema_statements(dimension: int) -> List[str]:
    """DDL for the search tables, safe to run repeatedly."""
    vector = f"vector({dimension})"
    return [
        f"""
        CREATE TABLE IF NOT EXISTS repositories (
            id UUID PRIMARY KEY,
            github_id BIGINT UNIQUE,
            name TEXT NOT NULL,
            full_name TEXT NOT NULL,
            description TEXT,
            language TEXT,
            topics TEXT[] NOT NULL DEFAULT '{{}}',
            stars INTEGER NOT NULL DEFAULT 0,
            forks INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'active',
            first_time_contributor_friendly BOOLEAN NOT NULL DEFAULT FALSE,
            contributor_friendliness INTEGER NOT NULL DEFAULT 50,
            learning_potential INTEGER NOT NULL DEFAULT 50,
            last_activity TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            embedding {vector}
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS opportunities (
            id UUID PRIMARY KEY,
            repository_id UUID NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            type TEXT NOT NULL,
            difficulty TEXT NOT NULL DEFAULT 'intermediate',
            priority INTEGER NOT NULL DEFAULT 50,
            required_skills TEXT[] NOT NULL DEFAULT '{{}}',
            technologies TEXT[] NOT NULL DEFAULT '{{}}',
            good_first_issue BOOLEAN NOT NULL DEFAULT FALSE,
            help_wanted BOOLEAN NOT NULL DEFAULT FALSE,
            mentorship_available BOOLEAN NOT NULL DEFAULT FALSE,
            estimated_hours INTEGER,
            view_count INTEGER NOT NULL DEFAULT 0,
            application_count INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'open',
            title_embedding {vector},
            description_embedding {vector},
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            github_username TEXT NOT NULL UNIQUE,
            email TEXT,
            name TEXT,
            bio TEXT,
            skill_level TEXT NOT NULL DEFAULT 'intermediate',
            preferred_languages TEXT[] NOT NULL DEFAULT '{{}}',
            availability_hours INTEGER NOT NULL DEFAULT 10,
            total_contributions INTEGER NOT NULL DEFAULT 0,
            last_active TIMESTAMPTZ,
            profile_embedding {vector},
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS user_preferences (
            user_id UUID PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            preferred_contribution_types TEXT[] NOT NULL DEFAULT '{}',
            max_estimated_hours INTEGER,
            notification_frequency INTEGER NOT NULL DEFAULT 24
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS contribution_outcomes (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            opportunity_id UUID NOT NULL REFERENCES opportunities(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'pending',
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS repository_interactions (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            repository_id UUID NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
            contributed BOOLEAN NOT NULL DEFAULT FALSE,
            last_interaction TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, repository_id)
        )
        """,
    ]


class PostgresStore(SQLSearchStore):
    """Store backed by a PostgreSQL server with the pgvector extension."""

    strategy = "postgres"

    def __init__(
        self,
        dsn: Optional[str],
        vector_dimension: int = 1536,
        development: bool = False,
        command_timeout: float = 60.0,
        connect_timeout: float = 10.0
    ):
        """Configure a PostgreSQL-backed store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - vector_dimension: Expected dimensionality for stored vectors
        - development: Log no-op cleanup paths at debug level
        - command_timeout: Seconds to allow per DB command
        - connect_timeout: Seconds to wait for the connection
        """
        super().__init__(vector_dimension=vector_dimension, development=development)
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout
        self._connection: Optional[Connection] = None
        self._transaction: Optional[Transaction] = None
        self._lock = asyncio.Lock()

    async def _connect(self) -> None:
        if not self.dsn:
            raise DataStoreConnectionError("No PostgreSQL DSN configured")
        try:
            self._connection = await asyncpg.connect(
                self.dsn,
                timeout=self.connect_timeout,
                command_timeout=self.command_timeout,
            )
        except Exception as e:
            logger.error("Failed to connect to PostgreSQL", error=str(e))
            raise DataStoreConnectionError(f"Failed to connect: {e}") from e

        try:
            await self._connection.execute("CREATE EXTENSION IF NOT EXISTS vector")
            await register_vector(self._connection)
            for statement in schema_statements(self.vector_dimension):
                await self._connection.execute(statement)
            self._transaction = self._connection.transaction()
            await self._transaction.start()
        except Exception as e:
            logger.error("Failed to initialise PostgreSQL schema", error=str(e))
            await self._release()
            raise DataStoreConnectionError(f"Failed to initialise schema: {e}") from e

    async def _release(self) -> None:
        connection, transaction = self._connection, self._transaction
        self._connection = self._transaction = None
        if connection is None:
            self._debug("Release skipped, no connection")
            return
        try:
            if transaction is not None:
                await transaction.rollback()
        except asyncpg.InterfaceError as e:
            self._debug("Rollback skipped", error=str(e))
        finally:
            if connection.is_closed():
                self._debug("Close skipped, connection already closed")
            else:
                await connection.close()

    async def health_check(self) -> bool:
        """Check if the connection answers and pgvector is installed."""
        if not self.is_open:
            return False
        try:
            row = await self._execute_query(
                "SELECT extname FROM pg_extension WHERE extname = 'vector'",
                fetch_one=True,
            )
            return row is not None
        except DataStoreQueryError:
            return False

    def _param(self, position: int) -> str:
        return f"${position}"

    def _similarity(self, column: str, param: str) -> str:
        return f"1 - ({column} <=> {param})"

    def _encode_vector(self, vector: np.ndarray) -> Any:
        return np.asarray(vector, dtype=np.float32)

    def _encode_value(self, value: Any, column: str) -> Any:
        if column in EMBEDDING_FIELDS and value is not None:
            return self._encode_vector(value)
        return value

    def _decode_row(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(row)

    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch: bool = False,
        fetch_one: bool = False
    ) -> Any:
        """Execute a query with error handling.

        The ``fetch``/``fetch_one`` flags control how results are retrieved.
        All failures are wrapped in ``DataStoreQueryError``. Each statement
        runs in a savepoint so a failure leaves the outer transaction usable.
        """
        if self._connection is None:
            raise DataStoreConnectionError("PostgreSQL store is not open")
        try:
            async with self._lock, self._connection.transaction():
                if fetch_one:
                    return await self._connection.fetchrow(query, *args)
                if fetch:
                    return await self._connection.fetch(query, *args)
                return await self._connection.execute(query, *args)
        except Exception as e:
            logger.error("Query execution failed", query=query, error=str(e))
            raise DataStoreQueryError(f"Query failed: {e}") from e
