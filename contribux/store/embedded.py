"""Embedded SQLite strategy (aiosqlite).

Runs in-process with no server, against a file or ``:memory:``. Embeddings
are stored as float32 blobs and compared by a ``vector_similarity``
function registered on the connection; lists are stored as JSON text and
timestamps as fixed-width UTC ISO strings so they order correctly as text.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

import aiosqlite
import numpy as np
import structlog

from contribux.models import EMBEDDING_FIELDS
from contribux.search.similarity import cosine_similarity

from .base import TABLES, DataStoreConnectionError, DataStoreQueryError
from .sql import SQLSearchStore

logger = structlog.get_logger("store.embedded")

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

SCHEMA = """
CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    github_id INTEGER UNIQUE,
    name TEXT NOT NULL,
    full_name TEXT NOT NULL,
    description TEXT,
    language TEXT,
    topics TEXT NOT NULL DEFAULT '[]',
    stars INTEGER NOT NULL DEFAULT 0,
    forks INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active',
    first_time_contributor_friendly INTEGER NOT NULL DEFAULT 0,
    contributor_friendliness INTEGER NOT NULL DEFAULT 50,
    learning_potential INTEGER NOT NULL DEFAULT 50,
    last_activity TEXT,
    created_at TEXT NOT NULL,
    embedding BLOB
);
CREATE TABLE IF NOT EXISTS opportunities (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    type TEXT NOT NULL,
    difficulty TEXT NOT NULL DEFAULT 'intermediate',
    priority INTEGER NOT NULL DEFAULT 50,
    required_skills TEXT NOT NULL DEFAULT '[]',
    technologies TEXT NOT NULL DEFAULT '[]',
    good_first_issue INTEGER NOT NULL DEFAULT 0,
    help_wanted INTEGER NOT NULL DEFAULT 0,
    mentorship_available INTEGER NOT NULL DEFAULT 0,
    estimated_hours INTEGER,
    view_count INTEGER NOT NULL DEFAULT 0,
    application_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'open',
    title_embedding BLOB,
    description_embedding BLOB,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    github_username TEXT NOT NULL UNIQUE,
    email TEXT,
    name TEXT,
    bio TEXT,
    skill_level TEXT NOT NULL DEFAULT 'intermediate',
    preferred_languages TEXT NOT NULL DEFAULT '[]',
    availability_hours INTEGER NOT NULL DEFAULT 10,
    total_contributions INTEGER NOT NULL DEFAULT 0,
    last_active TEXT,
    profile_embedding BLOB,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS user_preferences (
    user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    preferred_contribution_types TEXT NOT NULL DEFAULT '[]',
    max_estimated_hours INTEGER,
    notification_frequency INTEGER NOT NULL DEFAULT 24
);
CREATE TABLE IF NOT EXISTS contribution_outcomes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    opportunity_id TEXT NOT NULL REFERENCES opportunities(id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'pending',
    started_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE TABLE IF NOT EXISTS repository_interactions (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    contributed INTEGER NOT NULL DEFAULT 0,
    last_interaction TEXT NOT NULL,
    PRIMARY KEY (user_id, repository_id)
);
"""


def encode_vector(values: Any) -> bytes:
    return np.asarray(values, dtype=np.float32).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


def encode_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def vector_similarity(left: Optional[bytes], right: Optional[bytes]) -> Optional[float]:
    """SQL function: cosine similarity of two stored embeddings, NULL if either is missing."""
    if left is None or right is None:
        return None
    return cosine_similarity(decode_vector(left), decode_vector(right))


class EmbeddedStore(SQLSearchStore):
    """Store backed by an in-process SQLite database."""

    strategy = "embedded"

    def __init__(
        self,
        path: str = ":memory:",
        vector_dimension: int = 1536,
        development: bool = False,
        timeout: float = 5.0
    ):
        super().__init__(vector_dimension=vector_dimension, development=development)
        self.path = path
        self.timeout = timeout
        self._connection: Optional[aiosqlite.Connection] = None

    async def _connect(self) -> None:
        try:
            # Autocommit mode; the transaction is managed explicitly below.
            self._connection = await aiosqlite.connect(self.path, timeout=self.timeout, isolation_level=None)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
            await self._connection.create_function("vector_similarity", 2, vector_similarity, deterministic=True)
            await self._connection.executescript(SCHEMA)
            await self._connection.execute("BEGIN")
        except Exception as e:
            logger.error("Failed to open embedded database", path=self.path, error=str(e))
            await self._release()
            raise DataStoreConnectionError(f"Failed to open embedded database: {e}") from e

    async def _release(self) -> None:
        connection = self._connection
        self._connection = None
        if connection is None:
            self._debug("Release skipped, no connection")
            return
        try:
            if connection.in_transaction:
                await connection.rollback()
            else:
                self._debug("Rollback skipped, no open transaction")
        finally:
            await connection.close()

    async def health_check(self) -> bool:
        if not self.is_open:
            return False
        try:
            row = await self._execute_query("SELECT 1 AS ok", fetch_one=True)
            return row is not None and row["ok"] == 1
        except DataStoreQueryError:
            return False

    def _param(self, position: int) -> str:
        return f"?{position}"

    def _similarity(self, column: str, param: str) -> str:
        return f"vector_similarity({column}, {param})"

    def _encode_vector(self, vector: np.ndarray) -> Any:
        return encode_vector(vector)

    def _encode_value(self, value: Any, column: str) -> Any:
        if value is None:
            return None
        if column in EMBEDDING_FIELDS:
            return encode_vector(value)
        if isinstance(value, list):
            return json.dumps(value)
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, datetime):
            return encode_timestamp(value)
        if isinstance(value, bool):
            return int(value)
        return value

    def _decode_row(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        data = dict(row)
        for column in TABLES[table][1]:
            if data.get(column) is not None:
                data[column] = json.loads(data[column])
        for column in EMBEDDING_FIELDS:
            if data.get(column) is not None:
                data[column] = decode_vector(data[column])
        return data

    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch: bool = False,
        fetch_one: bool = False
    ) -> Any:
        if self._connection is None:
            raise DataStoreConnectionError("Embedded store is not open")
        try:
            async with self._connection.execute(query, args) as cursor:
                if fetch_one:
                    return await cursor.fetchone()
                if fetch:
                    return await cursor.fetchall()
                return cursor.rowcount
        except Exception as e:
            logger.error("Query execution failed", query=query, error=str(e))
            raise DataStoreQueryError(f"Query failed: {e}") from e
