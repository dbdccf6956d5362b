"""Base data-access interface.

Defines the contract the ranking and auxiliary functions depend on,
independent of the backing engine (PostgreSQL with pgvector, embedded
SQLite, or in-process memory).

A store is one logical connection. Everything written through it lives in
a single transaction that ``cleanup`` rolls back, so separate connections
never observe each other's uncommitted data. All methods are asynchronous.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Set, TypeVar
from uuid import UUID

import numpy as np
import structlog

from contribux.models import (
    EMBEDDING_FIELDS,
    ContributionOutcome,
    Opportunity,
    Record,
    Repository,
    RepositoryInteraction,
    User,
    UserPreferences,
)
from contribux.search.similarity import VectorLike, ensure_dimension

logger = structlog.get_logger("store.base")

RecordT = TypeVar("RecordT", bound=Record)

# table name -> (record type, columns holding lists)
TABLES: Dict[str, Any] = {
    "repositories": (Repository, ("topics",)),
    "opportunities": (Opportunity, ("required_skills", "technologies")),
    "users": (User, ("preferred_languages",)),
    "user_preferences": (UserPreferences, ("preferred_contribution_types",)),
    "contribution_outcomes": (ContributionOutcome, ()),
    "repository_interactions": (RepositoryInteraction, ()),
}


@dataclass(frozen=True)
class Candidate(Generic[RecordT]):
    """A record eligible for ranking and its similarity to the query vector.

    ``vector_score`` is ``None`` when no query vector was given or the
    record carries no embedding.
    """

    record: RecordT
    vector_score: Optional[float] = None


@dataclass(frozen=True)
class OpportunityCandidate(Candidate[Opportunity]):
    repository_language: Optional[str] = None
    repository_stars: int = 0


def record_to_row(record: Record) -> Dict[str, Any]:
    """Flatten a record into column values with enums replaced by their values."""
    row = {}
    for name, value in record.model_dump().items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = [item.value if isinstance(item, Enum) else item for item in value]
        row[name] = value
    return row


class SearchStore(ABC):
    """Abstract base class for search stores.

    Implementations must report vector similarity on the [0, 1] cosine
    scale and raise only the ``DataStoreError`` family for engine faults.
    """

    strategy = "abstract"

    def __init__(self, vector_dimension: int = 1536, development: bool = False):
        self.vector_dimension = vector_dimension
        self.development = development
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def __aenter__(self) -> "SearchStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()

    async def open(self) -> None:
        """Connect, ensure the schema exists and begin the transaction.

        Raises ``DataStoreConnectionError`` when the engine cannot be
        initialised.
        """
        if self._closed:
            raise DataStoreConnectionError(f"{self.strategy} store has already been cleaned up")
        if self._opened:
            return
        await self._connect()
        self._opened = True
        logger.info("Store opened", strategy=self.strategy)

    async def cleanup(self) -> None:
        """Roll back everything written and release the connection.

        Safe to call repeatedly, and after a failed ``open``. Never raises.
        """
        if self._closed:
            self._debug("Cleanup skipped, store already closed")
            return
        self._closed = True
        try:
            await self._release()
        except Exception as e:
            logger.warning("Store cleanup failed", strategy=self.strategy, error=str(e))
        finally:
            self._opened = False
        logger.info("Store closed", strategy=self.strategy)

    def _debug(self, message: str, **kwargs: Any) -> None:
        if self.development:
            logger.debug(message, strategy=self.strategy, **kwargs)

    def _require_open(self) -> None:
        if not self.is_open:
            raise DataStoreConnectionError(f"{self.strategy} store is not open")

    def _validate_embeddings(self, record: Record) -> None:
        for name in EMBEDDING_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                ensure_dimension(value, self.vector_dimension)

    @abstractmethod
    async def _connect(self) -> None:
        """Engine-specific initialisation."""
        pass

    @abstractmethod
    async def _release(self) -> None:
        """Engine-specific rollback and close; must tolerate partial init."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is usable."""
        pass

    # Writes

    @abstractmethod
    async def add_repository(self, repository: Repository) -> Repository:
        pass

    @abstractmethod
    async def add_opportunity(self, opportunity: Opportunity) -> Opportunity:
        """Store an opportunity; its repository must already exist."""
        pass

    @abstractmethod
    async def add_user(self, user: User) -> User:
        pass

    @abstractmethod
    async def set_user_preferences(self, preferences: UserPreferences) -> UserPreferences:
        """Create or replace the preferences of an existing user."""
        pass

    @abstractmethod
    async def add_contribution_outcome(self, outcome: ContributionOutcome) -> ContributionOutcome:
        pass

    @abstractmethod
    async def add_repository_interaction(self, interaction: RepositoryInteraction) -> RepositoryInteraction:
        """Create or replace the interaction between a user and a repository."""
        pass

    # Reads

    @abstractmethod
    async def fetch_opportunity_candidates(
        self,
        query_vector: Optional[VectorLike] = None,
        created_after: Optional[datetime] = None
    ) -> List[OpportunityCandidate]:
        """Open opportunities whose repository exists.

        ``vector_score`` is the best of the title and description embedding
        similarities.
        """
        pass

    @abstractmethod
    async def fetch_repository_candidates(
        self,
        query_vector: Optional[VectorLike] = None
    ) -> List[Candidate[Repository]]:
        """Active repositories."""
        pass

    @abstractmethod
    async def fetch_user_candidates(self, query_vector: VectorLike) -> List[Candidate[User]]:
        """Users with a profile embedding."""
        pass

    @abstractmethod
    async def get_repository(self, repository_id: UUID) -> Optional[Repository]:
        pass

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_preferences(self, user_id: UUID) -> Optional[UserPreferences]:
        pass

    @abstractmethod
    async def fetch_repository_opportunities(self, repository_id: UUID) -> List[Opportunity]:
        """All opportunities of a repository, whatever their status."""
        pass

    @abstractmethod
    async def fetch_repository_outcomes(self, repository_id: UUID) -> List[ContributionOutcome]:
        """Outcomes recorded against the repository's opportunities."""
        pass

    @abstractmethod
    async def fetch_contributed_repository_ids(self, user_id: UUID) -> Set[UUID]:
        """Repositories the user has already contributed to."""
        pass


def query_array(query_vector: Optional[VectorLike], dimension: int) -> Optional[np.ndarray]:
    if query_vector is None:
        return None
    return ensure_dimension(query_vector, dimension)


class DataStoreError(Exception):
    """Base exception for store operations."""
    pass


class DataStoreConnectionError(DataStoreError):
    """The backing engine could not be reached or initialised."""
    pass


class DataStoreQueryError(DataStoreError):
    """A statement failed inside the backing engine."""
    pass
