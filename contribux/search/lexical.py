"""Phrase and term matching against record text.

The query is treated as literal text; nothing in it is interpreted as a
pattern or operator. Fields are split into a title class, which weighs
more, and a body class.
"""

import re
from typing import Iterable, List, Optional, Set, Tuple

from contribux.models import Opportunity, Repository

TOKEN_PATTERN = re.compile(r"\w+")

EMPTY_QUERY_SCORE = 0.5
TITLE_PHRASE_SCORE = 1.0
BODY_PHRASE_SCORE = 0.7
TITLE_TERM_WEIGHT = 0.8
BODY_TERM_WEIGHT = 0.5
NO_MATCH_FLOOR = 0.1

Fields = Tuple[List[str], List[str]]


def normalize(text: Optional[str]) -> str:
    if not text:
        return ""
    return " ".join(text.casefold().split())


def _clean(values: Iterable[Optional[str]]) -> List[str]:
    return [normalize(value) for value in values if value]


def opportunity_fields(opportunity: Opportunity) -> Fields:
    """Title class: title. Body class: description, skills and technologies."""
    title = _clean([opportunity.title])
    body = _clean([opportunity.description, *opportunity.required_skills, *opportunity.technologies])
    return title, body


def repository_fields(repository: Repository) -> Fields:
    """Title class: name, full name and topics. Body class: description and language."""
    title = _clean([repository.name, repository.full_name, *repository.topics])
    body = _clean([repository.description, repository.language])
    return title, body


def _contains_phrase(phrase: str, fields: List[str]) -> bool:
    pattern = re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")
    return any(pattern.search(field) for field in fields)


def _coverage(terms: Set[str], fields: List[str]) -> float:
    tokens: Set[str] = set()
    for field in fields:
        tokens.update(TOKEN_PATTERN.findall(field))
    return len(terms & tokens) / len(terms)


def lexical_score(query: Optional[str], title_fields: List[str], body_fields: List[str]) -> float:
    """Score how well ``query`` matches a record's text.

    Parameters
    - query: raw query text, possibly empty
    - title_fields: normalised title-class fields
    - body_fields: normalised body-class fields

    Returns
    - a score in [0.1, 1.0]; an empty query scores a neutral 0.5 and a
      query without any word characters scores the floor
    """
    phrase = normalize(query)
    if not phrase:
        return EMPTY_QUERY_SCORE

    terms = set(TOKEN_PATTERN.findall(phrase))
    if not terms:
        return NO_MATCH_FLOOR

    # phrases only match whole words
    if _contains_phrase(phrase, title_fields):
        return TITLE_PHRASE_SCORE

    best = NO_MATCH_FLOOR
    if _contains_phrase(phrase, body_fields):
        best = BODY_PHRASE_SCORE

    best = max(
        best,
        TITLE_TERM_WEIGHT * _coverage(terms, title_fields),
        BODY_TERM_WEIGHT * _coverage(terms, body_fields),
    )
    return min(1.0, best)
