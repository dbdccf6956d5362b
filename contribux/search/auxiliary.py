"""Trending, repository health and preference matching.

Unlike the hybrid rankers these take no relevance weights. Each call is a
pure function of its arguments and the store's current contents.
"""

from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple, Type
from uuid import UUID

import structlog

from contribux.common.errors import NotFoundError, RepositoryNotFound, UserNotFound
from contribux.models import (
    Opportunity,
    OpportunityMatch,
    OpportunityStatus,
    RepositoryHealthMetrics,
    SkillLevel,
    TrendingOpportunity,
    User,
    UserPreferences,
    as_utc,
    utcnow,
)
from contribux.store.base import OpportunityCandidate, SearchStore

from .health import assess_repository
from .hybrid import validate_limit
from .similarity import cosine_similarity

logger = structlog.get_logger("search.auxiliary")

VIEW_WEIGHT = 0.7
APPLICATION_WEIGHT = 1.5
INTEREST_REASON_THRESHOLD = 0.7


def coerce_id(value: Any, error: Type[NotFoundError]) -> UUID:
    """Parse an identifier; anything that is not a UUID cannot resolve."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise error(value) from None


def trending_score(view_count: int, application_count: int) -> float:
    return view_count * VIEW_WEIGHT + application_count * APPLICATION_WEIGHT


async def get_trending_opportunities(
    store: SearchStore,
    time_window_hours: int = 168,
    min_engagement: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None
) -> List[TrendingOpportunity]:
    """Open opportunities created within the window, ordered by engagement.

    Parameters
    - time_window_hours: only opportunities created this recently count
    - min_engagement: minimum ``view_count + application_count``
    - limit: positive result cap
    - now: reference time, defaults to the current time

    Returns
    - results ordered by ``trending_score`` desc, then newest, then id
    """
    validate_limit(limit)
    now = as_utc(now) or utcnow()
    since = now - timedelta(hours=time_window_hours)

    candidates = await store.fetch_opportunity_candidates(created_after=since)
    scored: List[Tuple[float, OpportunityCandidate]] = []
    for candidate in candidates:
        record = candidate.record
        if record.view_count + record.application_count < min_engagement:
            continue
        scored.append((trending_score(record.view_count, record.application_count), candidate))

    scored.sort(key=lambda pair: (-pair[0], -pair[1].record.created_at.timestamp(), str(pair[1].record.id)))
    logger.info("Ranked trending opportunities", candidates=len(candidates), returned=min(limit, len(scored)))
    return [
        TrendingOpportunity.from_record(candidate.record, score, candidate.repository_stars)
        for score, candidate in scored[:limit]
    ]


async def get_repository_health_metrics(
    store: SearchStore,
    repository_id: Any,
    now: Optional[datetime] = None
) -> RepositoryHealthMetrics:
    """Health report for one repository.

    Raises ``RepositoryNotFound`` when the identifier does not resolve.
    """
    repository_id = coerce_id(repository_id, RepositoryNotFound)
    repository = await store.get_repository(repository_id)
    if repository is None:
        raise RepositoryNotFound(repository_id)

    opportunities = await store.fetch_repository_opportunities(repository_id)
    outcomes = await store.fetch_repository_outcomes(repository_id)
    hours = [outcome.completion_hours for outcome in outcomes if outcome.completion_hours is not None]
    assessment = assess_repository(repository, now)

    return RepositoryHealthMetrics(
        repository_id=repository_id,
        health_score=assessment.health_score,
        activity_score=assessment.activity_score,
        health_status=assessment.health_status,
        key_strengths=assessment.key_strengths,
        improvement_areas=assessment.improvement_areas,
        recommendations=assessment.recommendations,
        total_opportunities=len(opportunities),
        open_opportunities=sum(1 for o in opportunities if o.status == OpportunityStatus.OPEN),
        avg_completion_hours=sum(hours) / len(hours) if hours else 0.0,
    )


def is_preference_compatible(opportunity: Opportunity, preferences: Optional[UserPreferences]) -> bool:
    if preferences is None:
        return True
    if preferences.preferred_contribution_types and opportunity.type not in preferences.preferred_contribution_types:
        return False
    if (
        preferences.max_estimated_hours is not None
        and opportunity.estimated_hours is not None
        and opportunity.estimated_hours > preferences.max_estimated_hours
    ):
        return False
    return True


def _skill_component(user_level: SkillLevel, difficulty: SkillLevel) -> float:
    gap = abs(user_level.rank - difficulty.rank)
    if gap == 0:
        return 0.2
    if gap == 1:
        return 0.15
    return 0.05


def _time_component(opportunity: Opportunity, user: User, preferences: Optional[UserPreferences]) -> float:
    hours = opportunity.estimated_hours
    if preferences is not None and preferences.max_estimated_hours is not None and hours is not None:
        if hours <= preferences.max_estimated_hours:
            return 0.1
    if hours is None or hours <= user.availability_hours:
        return 0.05
    return 0.0


def score_match(
    user: User,
    preferences: Optional[UserPreferences],
    candidate: OpportunityCandidate
) -> Tuple[float, List[str]]:
    """Match score in [0, 1] and the reasons behind it."""
    opportunity = candidate.record
    reasons = []
    score = 0.0

    similarity = None
    if user.profile_embedding is not None and opportunity.description_embedding is not None:
        similarity = cosine_similarity(user.profile_embedding, opportunity.description_embedding)
    score += 0.3 * similarity if similarity is not None else 0.2
    if similarity is not None and similarity > INTEREST_REASON_THRESHOLD:
        reasons.append("Similar to your interests")

    score += _skill_component(user.skill_level, opportunity.difficulty)
    if opportunity.difficulty == user.skill_level:
        reasons.append("Matches your skill level")

    languages = {language.casefold() for language in user.preferred_languages}
    if candidate.repository_language and candidate.repository_language.casefold() in languages:
        score += 0.15
        reasons.append("Uses your preferred languages")

    preferred_types = preferences.preferred_contribution_types if preferences is not None else []
    score += 0.1 if opportunity.type in preferred_types else 0.05

    if user.skill_level == SkillLevel.BEGINNER and opportunity.good_first_issue:
        score += 0.1

    score += _time_component(opportunity, user, preferences)

    if opportunity.good_first_issue:
        reasons.append("Good first issue")
    if opportunity.help_wanted:
        reasons.append("Help wanted")
    if opportunity.mentorship_available:
        reasons.append("Mentorship available")

    return min(1.0, max(0.0, score)), reasons


async def find_matching_opportunities_for_user(
    store: SearchStore,
    user_id: Any,
    similarity_threshold: float = 0.6,
    limit: int = 10
) -> List[OpportunityMatch]:
    """Open opportunities compatible with a user's preferences, newest first.

    The candidate set excludes repositories the user already contributed
    to and honours preferred contribution types and the hours cap.

    Raises ``UserNotFound`` when the identifier does not resolve.
    """
    validate_limit(limit)
    user_id = coerce_id(user_id, UserNotFound)
    user = await store.get_user(user_id)
    if user is None:
        raise UserNotFound(user_id)

    preferences = await store.get_user_preferences(user_id)
    contributed = await store.fetch_contributed_repository_ids(user_id)
    candidates = [
        candidate for candidate in await store.fetch_opportunity_candidates()
        if candidate.record.repository_id not in contributed
        and is_preference_compatible(candidate.record, preferences)
    ]

    matches = []
    for candidate in candidates:
        score, reasons = score_match(user, preferences, candidate)
        if score >= similarity_threshold:
            matches.append((candidate.record, score, reasons))

    matches.sort(key=lambda match: (-match[0].created_at.timestamp(), str(match[0].id)))
    logger.info(
        "Matched opportunities for user",
        user_id=str(user_id),
        candidates=len(candidates),
        returned=min(limit, len(matches)),
    )
    return [OpportunityMatch.from_record(record, score, reasons) for record, score, reasons in matches[:limit]]
