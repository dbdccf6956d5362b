"""Typed errors surfaced by ranking and auxiliary functions.

Every strategy behind the data-access layer raises exactly these types for
the conditions below, so callers can handle them without knowing which
backend served the call.
"""

from typing import Any


class ContribuxError(Exception):
    """Base exception for the search engine."""


class InvalidWeights(ContribuxError, ValueError):
    """Both relevance weights are zero (or a weight is negative)."""

    def __init__(self, text_weight: float, vector_weight: float):
        self.text_weight = text_weight
        self.vector_weight = vector_weight
        if text_weight < 0 or vector_weight < 0:
            message = "Text weight and vector weight must not be negative"
        else:
            message = "Text weight and vector weight cannot both be zero"
        super().__init__(f"{message} (text_weight={text_weight}, vector_weight={vector_weight})")


class InvalidLimit(ContribuxError, ValueError):
    """Requested result cap is not a positive integer."""

    def __init__(self, limit: Any):
        self.limit = limit
        super().__init__(f"Result limit must be positive, got {limit!r}")


class DimensionMismatch(ContribuxError, ValueError):
    """Compared vectors differ in length."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected vector dimension {expected}, got {actual}")


class NotFoundError(ContribuxError, LookupError):
    """A referenced identifier does not resolve to an existing record."""

    entity = "Record"

    def __init__(self, identifier: Any):
        self.identifier = identifier
        super().__init__(f"{self.entity} not found: {identifier}")


class RepositoryNotFound(NotFoundError):
    entity = "Repository"


class UserNotFound(NotFoundError):
    entity = "User"
