"""Records read by the search engine and the shapes it returns.

Records (``Repository``, ``Opportunity``, ``User`` ...) are created and
mutated by ingestion flows elsewhere; the engine only reads them. Result
models extend a record with the scores computed for one call. Scores are
never written back.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

EMBEDDING_FIELDS = frozenset({"embedding", "title_embedding", "description_embedding", "profile_embedding"})


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Read a naive datetime as UTC; aware values pass through."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ContributionType(str, Enum):
    BUG_FIX = "bug_fix"
    FEATURE = "feature"
    DOCUMENTATION = "documentation"
    TEST = "test"
    REFACTOR = "refactor"
    SECURITY = "security"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return list(SkillLevel).index(self)


class OpportunityStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    STALE = "stale"
    CLOSED = "closed"


class RepositoryStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    PRIVATE = "private"
    FORK = "fork"
    TEMPLATE = "template"


class OutcomeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MERGED = "merged"
    ABANDONED = "abandoned"


class Record(BaseModel):
    """Base for stored records.

    Records are immutable; stores copy them on write. Naive timestamps are
    taken to be UTC and embeddings are normalised to plain float lists.
    """

    model_config = ConfigDict(frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_arrays(cls, value: Any) -> Any:
        if isinstance(value, np.ndarray):
            return value.astype(float).tolist()
        return value

    @field_validator("*", mode="after")
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return as_utc(value)
        return value


class Repository(Record):
    id: UUID = Field(default_factory=uuid4)
    github_id: Optional[int] = None
    name: str
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    stars: int = Field(default=0, ge=0)
    forks: int = Field(default=0, ge=0)
    status: RepositoryStatus = RepositoryStatus.ACTIVE
    first_time_contributor_friendly: bool = False
    contributor_friendliness: int = Field(default=50, ge=0, le=100)
    learning_potential: int = Field(default=50, ge=0, le=100)
    last_activity: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    embedding: Optional[List[float]] = None


class Opportunity(Record):
    id: UUID = Field(default_factory=uuid4)
    repository_id: UUID
    title: str
    description: Optional[str] = None
    type: ContributionType
    difficulty: SkillLevel = SkillLevel.INTERMEDIATE
    priority: int = Field(default=50, ge=0, le=100)
    required_skills: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    good_first_issue: bool = False
    help_wanted: bool = False
    mentorship_available: bool = False
    estimated_hours: Optional[int] = Field(default=None, gt=0)
    view_count: int = Field(default=0, ge=0)
    application_count: int = Field(default=0, ge=0)
    status: OpportunityStatus = OpportunityStatus.OPEN
    title_embedding: Optional[List[float]] = None
    description_embedding: Optional[List[float]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class User(Record):
    id: UUID = Field(default_factory=uuid4)
    github_username: str
    email: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    preferred_languages: List[str] = Field(default_factory=list)
    availability_hours: int = Field(default=10, ge=0, le=168)
    total_contributions: int = Field(default=0, ge=0)
    last_active: Optional[datetime] = None
    profile_embedding: Optional[List[float]] = None
    created_at: datetime = Field(default_factory=utcnow)


class UserPreferences(Record):
    user_id: UUID
    preferred_contribution_types: List[ContributionType] = Field(default_factory=list)
    max_estimated_hours: Optional[int] = Field(default=None, gt=0)
    notification_frequency: int = Field(default=24, gt=0, description="Hours between notifications")


class ContributionOutcome(Record):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    opportunity_id: UUID
    status: OutcomeStatus = OutcomeStatus.PENDING
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def completion_hours(self) -> Optional[float]:
        """Hours from start to completion, ``None`` while unresolved."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() / 3600.0


class RepositoryInteraction(Record):
    user_id: UUID
    repository_id: UUID
    contributed: bool = False
    last_interaction: datetime = Field(default_factory=utcnow)


def _without_embeddings(record: Record) -> Dict[str, Any]:
    return record.model_dump(exclude=set(EMBEDDING_FIELDS))


class OpportunitySearchResult(Opportunity):
    relevance_score: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_record(cls, record: Opportunity, relevance_score: float) -> "OpportunitySearchResult":
        return cls(**_without_embeddings(record), relevance_score=relevance_score)


class RepositorySearchResult(Repository):
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    health_score: float = Field(..., description="Derived at query time (0-100)")
    activity_score: float = Field(..., description="Derived at query time (0-100)")

    @classmethod
    def from_record(
        cls,
        record: Repository,
        relevance_score: float,
        health_score: float,
        activity_score: float
    ) -> "RepositorySearchResult":
        return cls(
            **_without_embeddings(record),
            relevance_score=relevance_score,
            health_score=health_score,
            activity_score=activity_score,
        )


class UserSearchResult(User):
    similarity_score: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_record(cls, record: User, similarity_score: float) -> "UserSearchResult":
        return cls(**_without_embeddings(record), similarity_score=similarity_score)


class TrendingOpportunity(Opportunity):
    trending_score: float = Field(..., ge=0.0)
    repository_stars: int = 0

    @classmethod
    def from_record(
        cls,
        record: Opportunity,
        trending_score: float,
        repository_stars: int = 0
    ) -> "TrendingOpportunity":
        return cls(
            **_without_embeddings(record),
            trending_score=trending_score,
            repository_stars=repository_stars,
        )


class OpportunityMatch(Opportunity):
    match_score: float = Field(..., ge=0.0, le=1.0)
    match_reasons: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: Opportunity, match_score: float, match_reasons: List[str]) -> "OpportunityMatch":
        return cls(**_without_embeddings(record), match_score=match_score, match_reasons=match_reasons)


class RepositoryHealthMetrics(BaseModel):
    """Health report for one repository."""

    repository_id: UUID
    health_score: float = Field(..., ge=0.0, le=100.0)
    activity_score: float = Field(..., ge=0.0, le=100.0)
    health_status: str
    key_strengths: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list, description="Human-readable advice")
    total_opportunities: int = 0
    open_opportunities: int = 0
    avg_completion_hours: float = Field(default=0.0, description="0 when no outcome is resolved")
