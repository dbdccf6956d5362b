"""Cosine similarity between embeddings.

Every backend reports similarity on the same scale: cosine of the two
vectors clamped to [0, 1]. A zero-norm vector has no direction, so its
similarity is 0 rather than undefined.
"""

import math
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from contribux.common.errors import DimensionMismatch

VectorLike = Union[Sequence[float], np.ndarray]


def as_vector(values: VectorLike) -> np.ndarray:
    """Return ``values`` as a one-dimensional float32 array."""
    vector = np.asarray(values, dtype=np.float32)
    if vector.ndim != 1:
        raise ValueError(f"Embedding must be one-dimensional, got shape {vector.shape}")
    return vector


def ensure_dimension(values: Optional[VectorLike], dimension: int) -> np.ndarray:
    """Validate an embedding against the configured dimension.

    Parameters
    - values: candidate embedding; ``None`` counts as dimension 0
    - dimension: expected number of components

    Returns
    - the embedding as a float32 array
    """
    if values is None:
        raise DimensionMismatch(dimension, 0)
    vector = as_vector(values)
    if vector.shape[0] != dimension:
        raise DimensionMismatch(dimension, vector.shape[0])
    return vector


def clamp_similarity(raw: Optional[float]) -> Optional[float]:
    """Bring a backend-reported similarity onto the shared [0, 1] scale."""
    if raw is None:
        return None
    value = float(raw)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def cosine_similarity(left: VectorLike, right: VectorLike) -> float:
    a = np.asarray(as_vector(left), dtype=np.float64)
    b = np.asarray(as_vector(right), dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return clamp_similarity(float(np.dot(a, b)) / norm)


def best_similarity(query: Optional[VectorLike], candidates: Iterable[Optional[VectorLike]]) -> Optional[float]:
    """Highest similarity between ``query`` and any present candidate.

    Returns ``None`` when there is no query or no candidate embedding.
    """
    if query is None:
        return None
    scores = [cosine_similarity(query, candidate) for candidate in candidates if candidate is not None]
    return max(scores) if scores else None
