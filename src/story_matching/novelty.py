"""Novelty detection against a story's accumulated content."""

from __future__ import annotations

import logging
from typing import Sequence

from story_matching.similarity import compute_centroid, cosine_similarity

logger = logging.getLogger(__name__)

NOVELTY_THRESHOLD = 0.85


def is_novel_content(
    new_embedding: Sequence[float],
    existing_embeddings: Sequence[Sequence[float]],
) -> bool:
    """True when new_embedding is not a near-restatement of existing content.

    Compares against the mean centroid of existing_embeddings. With no
    existing content every embedding is novel.
    """
    centroid = compute_centroid(existing_embeddings)
    if centroid is None:
        return True

    similarity = cosine_similarity(new_embedding, centroid)
    logger.debug("Similarity to story centroid: %.3f", similarity)
    return similarity < NOVELTY_THRESHOLD
