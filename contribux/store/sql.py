"""Shared query layer for the SQL-backed strategies.

PostgreSQL and SQLite run the same statements; each subclass supplies how
parameters are numbered, how similarity is expressed and how values are
encoded for its driver. Both engines accept ``INSERT ... ON CONFLICT``.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple
from uuid import UUID

import numpy as np

from contribux.models import (
    ContributionOutcome,
    Opportunity,
    Record,
    Repository,
    RepositoryInteraction,
    User,
    UserPreferences,
)
from contribux.search.similarity import VectorLike, clamp_similarity

from .base import TABLES, Candidate, OpportunityCandidate, SearchStore, query_array, record_to_row

OPPORTUNITY_COLUMNS = ", ".join(f"o.{name}" for name in Opportunity.model_fields)


class SQLSearchStore(SearchStore):
    """Search store that speaks SQL to a single connection."""

    @abstractmethod
    def _param(self, position: int) -> str:
        """Placeholder for the 1-based ``position``."""
        pass

    @abstractmethod
    def _similarity(self, column: str, param: str) -> str:
        """SQL expression for cosine similarity between a column and a parameter."""
        pass

    @abstractmethod
    def _encode_value(self, value: Any, column: str) -> Any:
        pass

    @abstractmethod
    def _encode_vector(self, vector: np.ndarray) -> Any:
        pass

    @abstractmethod
    def _decode_row(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch: bool = False,
        fetch_one: bool = False
    ) -> Any:
        """Run a statement, wrapping engine errors in ``DataStoreQueryError``."""
        pass

    def _record(self, table: str, row: Optional[Mapping[str, Any]]) -> Optional[Record]:
        if row is None:
            return None
        model = TABLES[table][0]
        return model.model_validate(self._decode_row(table, row))

    def _records(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Any]:
        return [self._record(table, row) for row in rows]

    async def _upsert(self, table: str, record: Record, conflict: Tuple[str, ...]) -> Record:
        self._require_open()
        self._validate_embeddings(record)
        row = record_to_row(record)
        columns = list(row)
        values = [self._encode_value(row[name], name) for name in columns]
        placeholders = ", ".join(self._param(i) for i in range(1, len(columns) + 1))
        updates = ", ".join(f"{name} = excluded.{name}" for name in columns if name not in conflict)
        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(conflict)}) DO UPDATE SET {updates}"
        )
        await self._execute_query(query, *values)
        return record

    async def _insert(self, table: str, record: Record) -> Record:
        self._require_open()
        self._validate_embeddings(record)
        row = record_to_row(record)
        columns = list(row)
        values = [self._encode_value(row[name], name) for name in columns]
        placeholders = ", ".join(self._param(i) for i in range(1, len(columns) + 1))
        await self._execute_query(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            *values,
        )
        return record

    # Writes

    async def add_repository(self, repository: Repository) -> Repository:
        return await self._insert("repositories", repository)

    async def add_opportunity(self, opportunity: Opportunity) -> Opportunity:
        return await self._insert("opportunities", opportunity)

    async def add_user(self, user: User) -> User:
        return await self._insert("users", user)

    async def set_user_preferences(self, preferences: UserPreferences) -> UserPreferences:
        return await self._upsert("user_preferences", preferences, ("user_id",))

    async def add_contribution_outcome(self, outcome: ContributionOutcome) -> ContributionOutcome:
        return await self._insert("contribution_outcomes", outcome)

    async def add_repository_interaction(self, interaction: RepositoryInteraction) -> RepositoryInteraction:
        return await self._upsert("repository_interactions", interaction, ("user_id", "repository_id"))

    # Reads

    async def fetch_opportunity_candidates(
        self,
        query_vector: Optional[VectorLike] = None,
        created_after: Optional[datetime] = None
    ) -> List[OpportunityCandidate]:
        self._require_open()
        query = query_array(query_vector, self.vector_dimension)
        args: List[Any] = []
        similarity = "NULL AS title_similarity, NULL AS description_similarity"
        if query is not None:
            args.append(self._encode_vector(query))
            param = self._param(len(args))
            similarity = (
                f"{self._similarity('o.title_embedding', param)} AS title_similarity, "
                f"{self._similarity('o.description_embedding', param)} AS description_similarity"
            )
        where = "o.status = 'open'"
        if created_after is not None:
            args.append(self._encode_value(created_after, "created_at"))
            where += f" AND o.created_at >= {self._param(len(args))}"

        rows = await self._execute_query(
            f"SELECT {OPPORTUNITY_COLUMNS}, r.language AS repository_language, "
            f"r.stars AS repository_stars, {similarity} "
            f"FROM opportunities o JOIN repositories r ON r.id = o.repository_id "
            f"WHERE {where}",
            *args,
            fetch=True,
        )

        candidates = []
        for row in rows:
            row = dict(row)
            scores = [
                clamp_similarity(row.pop("title_similarity")),
                clamp_similarity(row.pop("description_similarity")),
            ]
            scores = [score for score in scores if score is not None]
            language = row.pop("repository_language")
            stars = row.pop("repository_stars")
            candidates.append(OpportunityCandidate(
                record=self._record("opportunities", row),
                vector_score=max(scores) if scores else None,
                repository_language=language,
                repository_stars=stars or 0,
            ))
        return candidates

    async def _scored(self, table: str, column: str, query: Optional[np.ndarray], where: str) -> List[Candidate]:
        args: List[Any] = []
        similarity = "NULL"
        if query is not None:
            args.append(self._encode_vector(query))
            similarity = self._similarity(column, self._param(1))
        rows = await self._execute_query(
            f"SELECT *, {similarity} AS vector_similarity FROM {table} WHERE {where}",
            *args,
            fetch=True,
        )
        candidates = []
        for row in rows:
            row = dict(row)
            score = clamp_similarity(row.pop("vector_similarity"))
            candidates.append(Candidate(record=self._record(table, row), vector_score=score))
        return candidates

    async def fetch_repository_candidates(
        self,
        query_vector: Optional[VectorLike] = None
    ) -> List[Candidate[Repository]]:
        self._require_open()
        query = query_array(query_vector, self.vector_dimension)
        return await self._scored("repositories", "embedding", query, "status = 'active'")

    async def fetch_user_candidates(self, query_vector: VectorLike) -> List[Candidate[User]]:
        self._require_open()
        query = query_array(query_vector, self.vector_dimension)
        return await self._scored("users", "profile_embedding", query, "profile_embedding IS NOT NULL")

    async def _get(self, table: str, column: str, key: UUID) -> Optional[Any]:
        self._require_open()
        row = await self._execute_query(
            f"SELECT * FROM {table} WHERE {column} = {self._param(1)}",
            self._encode_value(key, column),
            fetch_one=True,
        )
        return self._record(table, row)

    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        return await self._get("repositories", "id", repository_id)

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self._get("users", "id", user_id)

    async def get_user_preferences(self, user_id: UUID) -> Optional[UserPreferences]:
        return await self._get("user_preferences", "user_id", user_id)

    async def fetch_repository_opportunities(self, repository_id: UUID) -> List[Opportunity]:
        self._require_open()
        rows = await self._execute_query(
            f"SELECT * FROM opportunities WHERE repository_id = {self._param(1)}",
            self._encode_value(repository_id, "repository_id"),
            fetch=True,
        )
        return self._records("opportunities", rows)

    async def fetch_repository_outcomes(self, repository_id: UUID) -> List[ContributionOutcome]:
        self._require_open()
        rows = await self._execute_query(
            "SELECT c.* FROM contribution_outcomes c "
            "JOIN opportunities o ON o.id = c.opportunity_id "
            f"WHERE o.repository_id = {self._param(1)}",
            self._encode_value(repository_id, "repository_id"),
            fetch=True,
        )
        return self._records("contribution_outcomes", rows)

    async def fetch_contributed_repository_ids(self, user_id: UUID) -> Set[UUID]:
        self._require_open()
        rows = await self._execute_query(
            "SELECT repository_id FROM repository_interactions "
            f"WHERE user_id = {self._param(1)} AND contributed",
            self._encode_value(user_id, "user_id"),
            fetch=True,
        )
        return {UUID(str(row["repository_id"])) for row in rows}
