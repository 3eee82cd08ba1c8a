"""Cosine similarity and tiered match classification."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from story_matching.models import MatchStrength

logger = logging.getLogger(__name__)

STRONG_THRESHOLD = 0.70
WEAK_THRESHOLD = 0.50


class DimensionMismatch(ValueError):
    """Raised when two embeddings cannot be compared."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two vectors, clamped to [-1, 1].

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatch: If the vectors are empty or differ in length.
    """
    a = np.asarray(a, dtype="float64")
    b = np.asarray(b, dtype="float64")
    if a.ndim != 1 or b.ndim != 1 or a.size == 0 or a.size != b.size:
        raise DimensionMismatch(f"Vector dimensions must match: {a.shape} vs {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = float(np.dot(a, b) / (norm_a * norm_b))
    return min(1.0, max(-1.0, score))


def match_strength(score: float) -> MatchStrength:
    """Classify a similarity score into STRONG / WEAK / NONE."""
    if score >= STRONG_THRESHOLD:
        return MatchStrength.STRONG
    if score >= WEAK_THRESHOLD:
        return MatchStrength.WEAK
    return MatchStrength.NONE


def is_match(score: float) -> bool:
    return score >= WEAK_THRESHOLD


def is_strong_match(score: float) -> bool:
    return score >= STRONG_THRESHOLD


def compute_centroid(embeddings: Sequence[Sequence[float]]) -> list[float] | None:
    """Average a list of embedding vectors. Returns None if empty."""
    if not embeddings:
        return None
    lengths = {len(embedding) for embedding in embeddings}
    if len(lengths) != 1:
        raise DimensionMismatch(f"Embeddings have mixed dimensions: {sorted(lengths)}")
    return np.mean(np.asarray(embeddings, dtype="float64"), axis=0).tolist()


def best_similarity(
    candidate: Sequence[float],
    embeddings: Sequence[Sequence[float]],
) -> float | None:
    """Highest similarity of candidate against any of embeddings.

    Pairs that cannot be compared are skipped. Returns None when no pair
    was comparable.
    """
    best: float | None = None
    for embedding in embeddings:
        try:
            score = cosine_similarity(candidate, embedding)
        except DimensionMismatch as exc:
            logger.warning("Skipping embedding pair: %s", exc)
            continue
        if best is None or score > best:
            best = score
    return best
