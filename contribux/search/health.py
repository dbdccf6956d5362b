"""Repository health and activity scores.

Both are derived from stored fields at query time on a 0-100 scale.

- activity: full marks for activity now, decaying linearly to 0 over
  ``ACTIVITY_WINDOW_DAYS``; no recorded activity scores 0
- popularity: logarithmic in stars plus forks, so 10^5 reaches the cap
- friendliness: the stored contributor-friendliness rating plus a bonus for
  first-timer friendly repositories
- health: weighted blend of popularity, friendliness and learning potential
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from contribux.models import Repository, as_utc, utcnow

ACTIVITY_WINDOW_DAYS = 180.0
POPULARITY_WEIGHT = 0.4
FRIENDLINESS_WEIGHT = 0.35
LEARNING_WEIGHT = 0.25
FIRST_TIMER_BONUS = 20.0

EXCELLENT = 80.0
GOOD = 60.0
FAIR = 40.0
STRENGTH_THRESHOLD = 70.0
IMPROVEMENT_THRESHOLD = 50.0


def _bounded(value: float) -> float:
    return min(100.0, max(0.0, value))


def activity_score(repository: Repository, now: Optional[datetime] = None) -> float:
    if repository.last_activity is None:
        return 0.0
    now = as_utc(now) or utcnow()
    idle_days = max(0.0, (now - repository.last_activity).total_seconds() / 86400.0)
    return _bounded(100.0 * (1.0 - idle_days / ACTIVITY_WINDOW_DAYS))


def popularity_score(repository: Repository) -> float:
    return _bounded(20.0 * math.log10(repository.stars + repository.forks + 1))


def friendliness_score(repository: Repository) -> float:
    bonus = FIRST_TIMER_BONUS if repository.first_time_contributor_friendly else 0.0
    return _bounded(0.8 * repository.contributor_friendliness + bonus)


def health_score(repository: Repository) -> float:
    return _bounded(
        POPULARITY_WEIGHT * popularity_score(repository)
        + FRIENDLINESS_WEIGHT * friendliness_score(repository)
        + LEARNING_WEIGHT * repository.learning_potential
    )


def health_status(score: float) -> str:
    if score >= EXCELLENT:
        return "excellent"
    if score >= GOOD:
        return "good"
    if score >= FAIR:
        return "fair"
    return "needs_improvement"


@dataclass
class HealthAssessment:
    """Scores and advice derived from one repository record."""

    health_score: float
    activity_score: float
    health_status: str
    key_strengths: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


# (signal, strength tag, improvement tag, advice)
_SIGNALS = (
    ("activity", "active_development", "increase_activity",
     "Merge or triage pending work regularly to show the project is maintained."),
    ("popularity", "popular", "grow_visibility",
     "Add topics and a clear README to help contributors discover the project."),
    ("friendliness", "contributor_friendly", "better_onboarding",
     "Label good first issues and document the contribution workflow."),
    ("learning", "great_for_learning", "add_learning_resources",
     "Offer mentorship or architecture notes so newcomers can learn from the codebase."),
)


def assess_repository(repository: Repository, now: Optional[datetime] = None) -> HealthAssessment:
    signals = {
        "activity": activity_score(repository, now),
        "popularity": popularity_score(repository),
        "friendliness": friendliness_score(repository),
        "learning": float(repository.learning_potential),
    }
    score = health_score(repository)
    assessment = HealthAssessment(
        health_score=score,
        activity_score=signals["activity"],
        health_status=health_status(score),
    )
    for signal, strength, improvement, advice in _SIGNALS:
        value = signals[signal]
        if value >= STRENGTH_THRESHOLD:
            assessment.key_strengths.append(strength)
        elif value < IMPROVEMENT_THRESHOLD:
            assessment.improvement_areas.append(improvement)
            assessment.recommendations.append(advice)
    if not assessment.recommendations:
        assessment.recommendations.append("Keep up the current maintenance practices.")
    return assessment
