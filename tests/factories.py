"""Seed records for tests.

Vectors are 8-dimensional; ``axis`` and ``blend`` build directions with a
known cosine similarity to each other.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import numpy as np

from contribux.models import (
    ContributionOutcome,
    ContributionType,
    Opportunity,
    Repository,
    RepositoryInteraction,
    SkillLevel,
    User,
    UserPreferences,
)

DIMENSION = 8
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def axis(index: int) -> List[float]:
    vector = [0.0] * DIMENSION
    vector[index] = 1.0
    return vector


def blend(first: int, second: int, weight: float) -> List[float]:
    """Unit vector between two axes; ``weight`` is the share of ``second``."""
    vector = np.zeros(DIMENSION)
    vector[first] = 1.0 - weight
    vector[second] = weight
    return (vector / np.linalg.norm(vector)).tolist()


def filled(value: float) -> List[float]:
    return [value] * DIMENSION


def make_repository(**overrides) -> Repository:
    fields = {
        "github_id": 1001,
        "name": "test-repo",
        "full_name": "contribux/test-repo",
        "description": "A search engine for open source contribution opportunities",
        "language": "TypeScript",
        "topics": ["search", "open-source"],
        "stars": 100,
        "forks": 10,
        "first_time_contributor_friendly": True,
        "contributor_friendliness": 80,
        "learning_potential": 75,
        "last_activity": NOW - timedelta(days=3),
        "created_at": NOW - timedelta(days=400),
        "embedding": axis(0),
    }
    fields.update(overrides)
    return Repository(**fields)


def make_opportunity(repository: Repository, **overrides) -> Opportunity:
    fields = {
        "repository_id": repository.id,
        "title": "Fix TypeScript type errors in search module",
        "description": "Several type errors break the build of the search module",
        "type": ContributionType.BUG_FIX,
        "difficulty": SkillLevel.INTERMEDIATE,
        "required_skills": ["TypeScript"],
        "technologies": ["TypeScript", "Node.js"],
        "good_first_issue": False,
        "estimated_hours": 4,
        "view_count": 10,
        "application_count": 2,
        "title_embedding": axis(0),
        "description_embedding": axis(0),
        "created_at": NOW - timedelta(hours=24),
        "updated_at": NOW - timedelta(hours=24),
    }
    fields.update(overrides)
    return Opportunity(**fields)


def make_user(**overrides) -> User:
    fields = {
        "github_username": "testuser",
        "email": "test@example.com",
        "name": "Test User",
        "skill_level": SkillLevel.INTERMEDIATE,
        "preferred_languages": ["TypeScript", "Python"],
        "availability_hours": 20,
        "profile_embedding": axis(0),
        "created_at": NOW - timedelta(days=30),
    }
    fields.update(overrides)
    return User(**fields)


def make_preferences(user: User, **overrides) -> UserPreferences:
    fields = {"user_id": user.id}
    fields.update(overrides)
    return UserPreferences(**fields)


def make_outcome(user: User, opportunity: Opportunity, hours: float = None, **overrides) -> ContributionOutcome:
    started = NOW - timedelta(days=10)
    fields = {
        "user_id": user.id,
        "opportunity_id": opportunity.id,
        "started_at": started,
        "completed_at": started + timedelta(hours=hours) if hours is not None else None,
    }
    fields.update(overrides)
    return ContributionOutcome(**fields)


def make_interaction(user: User, repository: Repository, contributed: bool = True) -> RepositoryInteraction:
    return RepositoryInteraction(
        user_id=user.id,
        repository_id=repository.id,
        contributed=contributed,
        last_interaction=NOW - timedelta(days=1),
    )
