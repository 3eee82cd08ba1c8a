"""Data models shared by the story matching stages."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MatchStrength(str, Enum):
    """Confidence band of a similarity score."""

    STRONG = "strong"
    WEAK = "weak"
    NONE = "none"


@dataclass(frozen=True)
class Article:
    """Externally sourced article. The id is the canonical URL."""

    id: str
    title: str
    published_at: datetime
    source: str
    text: str | None = None
    bias_category: int | None = None
    ingested_at: datetime | None = None


@dataclass(frozen=True)
class CandidateArticle:
    """Untracked article with its embedding, ready for matching."""

    article: Article
    embedding: list[float]


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [start, end] publication-time range."""

    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value <= self.end


@dataclass
class MatchOutcome:
    """Result of evaluating one candidate article against one story."""

    story_id: str
    article_id: str
    similarity: float
    strength: MatchStrength
    is_novel: bool = False
    has_new_perspective: bool = False
    attached: bool = False


@dataclass
class MatchSummary:
    """Counts over a matching pass, for telemetry."""

    evaluated: int = 0
    strong: int = 0
    weak: int = 0
    novel: int = 0
    new_perspective: int = 0
    attached: int = 0
    story_ids: set[str] = field(default_factory=set)
