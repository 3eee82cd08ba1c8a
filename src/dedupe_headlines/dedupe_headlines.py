"""Collapse near-duplicate headlines in a freshly fetched batch.

Single pass, greedy and order-sensitive: each article is compared only with
the first member of every existing cluster. Chains where A~B and B~C but
A!~C are not merged transitively.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from common.utils import get_value

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({"video", "live", "update", "new", "watch", "photos", "exclusive"})
JACCARD_THRESHOLD = 0.20

_NON_ALNUM = re.compile(r"[^a-z0-9 ]")


@dataclass
class HeadlineCluster:
    """Articles whose titles matched the cluster's first member."""

    key: frozenset[str]
    members: list[Any] = field(default_factory=list)

    @property
    def representative(self) -> Any:
        return self.members[0]


def normalize_title(title: str | None, stop_words: frozenset[str] = STOP_WORDS) -> frozenset[str]:
    """Lowercased title tokens without punctuation or stop-words."""
    if not title:
        return frozenset()
    cleaned = _NON_ALNUM.sub("", title.lower())
    return frozenset(token for token in cleaned.split() if token not in stop_words)


def jaccard_similarity(set_a: frozenset[str], set_b: frozenset[str]) -> float:
    """Jaccard similarity of two sets. Returns 0.0 if both empty."""
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def cluster_headlines(
    articles: Iterable[Any],
    threshold: float = JACCARD_THRESHOLD,
    stop_words: frozenset[str] = STOP_WORDS,
) -> list[HeadlineCluster]:
    """Group articles by headline overlap.

    Args:
        articles: Article dataclasses or dicts with a title field, in fetch order.
        threshold: Titles match when Jaccard similarity is strictly above this.
        stop_words: Tokens ignored when comparing titles.

    Returns:
        Clusters in order of their first member.
    """
    clusters: list[HeadlineCluster] = []

    for article in articles:
        tokens = normalize_title(get_value(article, "title"), stop_words)

        # Titles with no usable tokens never match and never act as a key.
        if not tokens:
            clusters.append(HeadlineCluster(key=tokens, members=[article]))
            continue

        for cluster in clusters:
            if cluster.key and jaccard_similarity(tokens, cluster.key) > threshold:
                cluster.members.append(article)
                break
        else:
            clusters.append(HeadlineCluster(key=tokens, members=[article]))

    return clusters


def dedupe_headlines(
    articles: list[Any],
    threshold: float = JACCARD_THRESHOLD,
    stop_words: frozenset[str] = STOP_WORDS,
) -> list[Any]:
    """Keep the first-seen article of each headline cluster."""
    if not articles:
        return []

    clusters = cluster_headlines(articles, threshold=threshold, stop_words=stop_words)
    kept = [cluster.representative for cluster in clusters]
    logger.info(
        "Collapsed %d articles into %d headline clusters (%d duplicates dropped)",
        len(articles),
        len(kept),
        len(articles) - len(kept),
    )
    return kept
