"""Tests for the vector similarity primitive."""

import math

import numpy as np
import pytest

from contribux.common.errors import DimensionMismatch
from contribux.search.similarity import (
    best_similarity,
    clamp_similarity,
    cosine_similarity,
    ensure_dimension,
)


def test_vector_similarity():
    """Identical directions score 1, orthogonal ones 0."""
    vec1 = np.array([1.0, 0.0, 0.0])
    vec2 = np.array([0.0, 1.0, 0.0])
    vec3 = np.array([2.0, 0.0, 0.0])

    assert cosine_similarity(vec1, vec2) == pytest.approx(0.0)
    assert cosine_similarity(vec1, vec3) == pytest.approx(1.0)


def test_opposite_vectors_clamp_to_zero():
    """Negative cosine is clamped to the bottom of the scale."""
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0


def test_zero_vector_has_no_similarity():
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0


def test_similarity_is_bounded():
    """Random vectors always land in [0, 1]."""
    rng = np.random.default_rng(7)
    for _ in range(50):
        a, b = rng.normal(size=16), rng.normal(size=16)
        assert 0.0 <= cosine_similarity(a, b) <= 1.0


def test_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert exc_info.value.expected == 2
    assert exc_info.value.actual == 3


def test_vector_dimensions():
    """Embeddings are validated against the configured dimension."""
    for dim in [8, 128, 384]:
        vec = ensure_dimension(np.random.rand(dim), dim)
        assert vec.shape == (dim,)
        assert vec.dtype == np.float32

    with pytest.raises(DimensionMismatch):
        ensure_dimension([0.1] * 7, 8)


def test_missing_vector_counts_as_dimension_zero():
    with pytest.raises(DimensionMismatch) as exc_info:
        ensure_dimension(None, 8)
    assert exc_info.value.actual == 0


def test_clamp_similarity():
    """Backend values are normalised onto [0, 1]."""
    assert clamp_similarity(None) is None
    assert clamp_similarity(math.nan) == 0.0
    assert clamp_similarity(-0.2) == 0.0
    assert clamp_similarity(1.0000001) == 1.0
    assert clamp_similarity(0.42) == pytest.approx(0.42)


def test_best_similarity_skips_missing_candidates():
    query = [1.0, 0.0]
    assert best_similarity(query, [None, [0.0, 1.0], [1.0, 0.0]]) == pytest.approx(1.0)
    assert best_similarity(query, [None, None]) is None
    assert best_similarity(None, [[1.0, 0.0]]) is None
