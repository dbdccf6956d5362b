"""In-process store.

Tables are dicts held by a ``MemoryDatabase`` that several connections may
share. A connection snapshots the tables when it opens and restores the
snapshot on cleanup, which is how it rolls back. Similarity is computed in
Python with the same primitive the other strategies are checked against.
"""

from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

import numpy as np

from contribux.models import (
    EMBEDDING_FIELDS,
    ContributionOutcome,
    Opportunity,
    OpportunityStatus,
    Record,
    Repository,
    RepositoryInteraction,
    RepositoryStatus,
    User,
    UserPreferences,
    as_utc,
)
from contribux.search.similarity import VectorLike, best_similarity

from .base import (
    TABLES,
    Candidate,
    DataStoreQueryError,
    OpportunityCandidate,
    SearchStore,
    query_array,
)


class MemoryDatabase:
    """Dict-backed tables keyed by primary key."""

    def __init__(self):
        self.tables: Dict[str, Dict] = {name: {} for name in TABLES}

    def snapshot(self) -> Dict[str, Dict]:
        return {name: dict(rows) for name, rows in self.tables.items()}

    def restore(self, snapshot: Dict[str, Dict]) -> None:
        for name, rows in snapshot.items():
            self.tables[name] = dict(rows)


def _as_float32(record: Record) -> Record:
    """Round embeddings through float32 like the SQL strategies store them."""
    updates = {}
    for name in EMBEDDING_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            updates[name] = np.asarray(value, dtype=np.float32).astype(float).tolist()
    return record.model_copy(update=updates) if updates else record


class MemoryStore(SearchStore):
    """Store backed by process memory."""

    strategy = "memory"

    def __init__(
        self,
        vector_dimension: int = 1536,
        development: bool = False,
        database: Optional[MemoryDatabase] = None
    ):
        super().__init__(vector_dimension=vector_dimension, development=development)
        self.database = database if database is not None else MemoryDatabase()
        self._snapshot: Optional[Dict[str, Dict]] = None

    async def _connect(self) -> None:
        self._snapshot = self.database.snapshot()

    async def _release(self) -> None:
        if self._snapshot is None:
            self._debug("Rollback skipped, no snapshot taken")
            return
        self.database.restore(self._snapshot)
        self._snapshot = None

    async def health_check(self) -> bool:
        return self.is_open

    def _table(self, name: str) -> Dict:
        self._require_open()
        return self.database.tables[name]

    def _put(self, table: str, key, record: Record) -> Record:
        self._validate_embeddings(record)
        record = _as_float32(record)
        self._table(table)[key] = record
        return record

    # Writes

    async def add_repository(self, repository: Repository) -> Repository:
        if repository.id in self._table("repositories"):
            raise DataStoreQueryError(f"Duplicate repository id: {repository.id}")
        if repository.github_id is not None and any(
            existing.github_id == repository.github_id for existing in self._table("repositories").values()
        ):
            raise DataStoreQueryError(f"Duplicate repository github_id: {repository.github_id}")
        return self._put("repositories", repository.id, repository)

    async def add_opportunity(self, opportunity: Opportunity) -> Opportunity:
        if opportunity.repository_id not in self._table("repositories"):
            raise DataStoreQueryError(f"Unknown repository for opportunity: {opportunity.repository_id}")
        if opportunity.id in self._table("opportunities"):
            raise DataStoreQueryError(f"Duplicate opportunity id: {opportunity.id}")
        return self._put("opportunities", opportunity.id, opportunity)

    async def add_user(self, user: User) -> User:
        if user.id in self._table("users"):
            raise DataStoreQueryError(f"Duplicate user id: {user.id}")
        if any(existing.github_username == user.github_username for existing in self._table("users").values()):
            raise DataStoreQueryError(f"Duplicate github username: {user.github_username}")
        return self._put("users", user.id, user)

    async def set_user_preferences(self, preferences: UserPreferences) -> UserPreferences:
        if preferences.user_id not in self._table("users"):
            raise DataStoreQueryError(f"Unknown user for preferences: {preferences.user_id}")
        return self._put("user_preferences", preferences.user_id, preferences)

    async def add_contribution_outcome(self, outcome: ContributionOutcome) -> ContributionOutcome:
        if outcome.user_id not in self._table("users"):
            raise DataStoreQueryError(f"Unknown user for outcome: {outcome.user_id}")
        if outcome.opportunity_id not in self._table("opportunities"):
            raise DataStoreQueryError(f"Unknown opportunity for outcome: {outcome.opportunity_id}")
        if outcome.id in self._table("contribution_outcomes"):
            raise DataStoreQueryError(f"Duplicate contribution outcome id: {outcome.id}")
        return self._put("contribution_outcomes", outcome.id, outcome)

    async def add_repository_interaction(self, interaction: RepositoryInteraction) -> RepositoryInteraction:
        if interaction.user_id not in self._table("users"):
            raise DataStoreQueryError(f"Unknown user for interaction: {interaction.user_id}")
        if interaction.repository_id not in self._table("repositories"):
            raise DataStoreQueryError(f"Unknown repository for interaction: {interaction.repository_id}")
        key: Tuple[UUID, UUID] = (interaction.user_id, interaction.repository_id)
        return self._put("repository_interactions", key, interaction)

    # Reads

    async def fetch_opportunity_candidates(
        self,
        query_vector: Optional[VectorLike] = None,
        created_after: Optional[datetime] = None
    ) -> List[OpportunityCandidate]:
        query = query_array(query_vector, self.vector_dimension)
        created_after = as_utc(created_after)
        repositories = self._table("repositories")
        candidates = []
        for opportunity in self._table("opportunities").values():
            repository = repositories.get(opportunity.repository_id)
            if repository is None or opportunity.status != OpportunityStatus.OPEN:
                continue
            if created_after is not None and opportunity.created_at < created_after:
                continue
            score = best_similarity(query, [opportunity.title_embedding, opportunity.description_embedding])
            candidates.append(OpportunityCandidate(
                record=opportunity,
                vector_score=score,
                repository_language=repository.language,
                repository_stars=repository.stars,
            ))
        return candidates

    async def fetch_repository_candidates(
        self,
        query_vector: Optional[VectorLike] = None
    ) -> List[Candidate[Repository]]:
        query = query_array(query_vector, self.vector_dimension)
        return [
            Candidate(record=repository, vector_score=best_similarity(query, [repository.embedding]))
            for repository in self._table("repositories").values()
            if repository.status == RepositoryStatus.ACTIVE
        ]

    async def fetch_user_candidates(self, query_vector: VectorLike) -> List[Candidate[User]]:
        query = query_array(query_vector, self.vector_dimension)
        return [
            Candidate(record=user, vector_score=best_similarity(query, [user.profile_embedding]))
            for user in self._table("users").values()
            if user.profile_embedding is not None
        ]

    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        return self._table("repositories").get(repository_id)

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return self._table("users").get(user_id)

    async def get_user_preferences(self, user_id: UUID) -> Optional[UserPreferences]:
        return self._table("user_preferences").get(user_id)

    async def fetch_repository_opportunities(self, repository_id: UUID) -> List[Opportunity]:
        return [
            opportunity for opportunity in self._table("opportunities").values()
            if opportunity.repository_id == repository_id
        ]

    async def fetch_repository_outcomes(self, repository_id: UUID) -> List[ContributionOutcome]:
        opportunity_ids = {opportunity.id for opportunity in await self.fetch_repository_opportunities(repository_id)}
        return [
            outcome for outcome in self._table("contribution_outcomes").values()
            if outcome.opportunity_id in opportunity_ids
        ]

    async def fetch_contributed_repository_ids(self, user_id: UUID) -> Set[UUID]:
        return {
            interaction.repository_id
            for interaction in self._table("repository_interactions").values()
            if interaction.user_id == user_id and interaction.contributed
        }
