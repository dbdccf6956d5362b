"""Weighted combination of lexical and vector relevance."""

from numbers import Integral
from typing import Optional

from contribux.common.errors import InvalidLimit, InvalidWeights


def validate_weights(text_weight: float, vector_weight: float) -> None:
    if text_weight < 0 or vector_weight < 0:
        raise InvalidWeights(text_weight, vector_weight)
    if text_weight == 0 and vector_weight == 0:
        raise InvalidWeights(text_weight, vector_weight)


def validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, Integral) or limit <= 0:
        raise InvalidLimit(limit)


class HybridScorer:
    """Blends lexical and vector scores with fixed weights.

    Weights are validated on construction so ranking calls fail before any
    candidate is read. A component with weight 0 is left out of the blend
    entirely. When the vector score is missing (no query vector, or the
    record has no embedding) the lexical score stands in for it.
    """

    def __init__(self, text_weight: float, vector_weight: float):
        validate_weights(text_weight, vector_weight)
        self.text_weight = float(text_weight)
        self.vector_weight = float(vector_weight)

    @property
    def uses_vector(self) -> bool:
        return self.vector_weight > 0

    def score(self, lexical: float, vector: Optional[float] = None) -> float:
        total = 0.0
        applied = 0.0
        if self.text_weight > 0:
            total += self.text_weight * lexical
            applied += self.text_weight
        if self.vector_weight > 0:
            component = lexical if vector is None else vector
            total += self.vector_weight * component
            applied += self.vector_weight
        return min(1.0, max(0.0, total / applied))


def hybrid_score(
    text_weight: float,
    vector_weight: float,
    lexical: float,
    vector: Optional[float] = None
) -> float:
    return HybridScorer(text_weight, vector_weight).score(lexical, vector)
