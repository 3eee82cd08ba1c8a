"""Read models for tracked stories."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from story_matching.models import Article


class AttachResult(str, Enum):
    ATTACHED = "attached"
    ALREADY_MEMBER = "already_member"
    TRACKED_ELSEWHERE = "tracked_elsewhere"
    STORY_MISSING = "story_missing"


@dataclass
class TrackedArticle:
    """Story member with its matching annotations."""

    article: Article
    attached_at: datetime
    is_novel: bool = False
    has_new_perspective: bool = False

    @property
    def bias_category(self) -> int | None:
        return self.article.bias_category


@dataclass
class Story:
    """Tracked story with members ordered by publication time."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    last_viewed_at: datetime
    articles: list[TrackedArticle] = field(default_factory=list)

    @property
    def article_ids(self) -> list[str]:
        return [member.article.id for member in self.articles]

    @property
    def latest_published_at(self) -> datetime | None:
        if not self.articles:
            return None
        return max(member.article.published_at for member in self.articles)

    def unread_count(self) -> int:
        """Members ingested after the story was last viewed."""
        return sum(
            1
            for member in self.articles
            if member.article.ingested_at is not None and member.article.ingested_at > self.last_viewed_at
        )


@dataclass
class StoryWithUnreadCount:
    story: Story
    unread_count: int
