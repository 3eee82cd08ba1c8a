"""Persistent model of tracked stories and their member articles.

Invariants maintained by the write path:

* an article belongs to at most one story (article_stories is keyed by
  article_id), and appears in it at most once;
* a story is created together with its seed article in one transaction, so
  it is never empty;
* at most MAX_TRACKED_STORIES stories exist.

Writes (follow, attach, view, unfollow) are serialized by a process
lock and each runs in a single transaction.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Callable
from uuid import uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from common.datetime import ensure_utc, utc_now
from story_matching.models import Article, CandidateArticle, TimeWindow
from track_stories import tables
from track_stories.article_cache import ArticleCache, article_values, row_to_article
from track_stories.connection import insert_ignore, session_scope
from track_stories.models import AttachResult, Story, StoryWithUnreadCount, TrackedArticle

logger = logging.getLogger(__name__)

MAX_TRACKED_STORIES = 1000


class LimitReached(Exception):
    """The tracked-story ceiling has been reached."""


class ArticleAlreadyTracked(Exception):
    """The article already belongs to a story."""


class StoryTrackingStore:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = utc_now,
        max_stories: int = MAX_TRACKED_STORIES,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._max_stories = max_stories
        self._write_lock = threading.RLock()
        self.article_cache = ArticleCache(session_factory, clock=clock)

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def follow_article(self, article: Article) -> Story:
        """Start tracking a new story seeded with article.

        Raises:
            LimitReached: If MAX_TRACKED_STORIES stories already exist.
            ArticleAlreadyTracked: If the article already belongs to a story.
        """
        with self._write_lock, session_scope(self._session_factory) as session:
            count = session.execute(select(func.count()).select_from(tables.Story)).scalar_one()
            if count >= self._max_stories:
                logger.warning("Cannot follow %s: %d stories tracked", article.id, count)
                raise LimitReached(
                    f"Storage limit reached ({self._max_stories} stories). Unfollow some stories."
                )

            existing = session.get(tables.ArticleStory, article.id)
            if existing is not None:
                raise ArticleAlreadyTracked(
                    f"Article {article.id} already belongs to story {existing.story_id}"
                )

            now = self._now()
            insert_ignore(session, tables.Article, article_values(article, now), ["id"])

            story_id = uuid4().hex
            session.add(
                tables.Story(
                    id=story_id,
                    title=article.title,
                    created_at=now,
                    updated_at=now,
                    last_viewed_at=now,
                )
            )
            session.flush()
            session.add(tables.ArticleStory(article_id=article.id, story_id=story_id, attached_at=now))
            session.flush()

            story = self._load_stories(session, [story_id])[0]

        logger.info("Following story %s seeded with %s", story_id, article.id)
        return story

    def attach_article(
        self,
        story_id: str,
        article_id: str,
        is_novel: bool = False,
        has_new_perspective: bool = False,
    ) -> AttachResult:
        """Add a cached article to a story. Re-attaching a member is a no-op."""
        with self._write_lock, session_scope(self._session_factory) as session:
            story = session.get(tables.Story, story_id)
            if story is None:
                logger.warning("Cannot attach %s: story %s does not exist", article_id, story_id)
                return AttachResult.STORY_MISSING

            now = self._now()
            inserted = insert_ignore(
                session,
                tables.ArticleStory,
                {
                    "article_id": article_id,
                    "story_id": story_id,
                    "attached_at": now,
                    "is_novel": is_novel,
                    "has_new_perspective": has_new_perspective,
                },
                ["article_id"],
            )
            if inserted:
                story.updated_at = now
                logger.info("Attached %s to story %s", article_id, story_id)
                return AttachResult.ATTACHED

            membership = session.get(tables.ArticleStory, article_id)
            if membership is not None and membership.story_id == story_id:
                return AttachResult.ALREADY_MEMBER

        logger.warning("Not attaching %s to %s: tracked by another story", article_id, story_id)
        return AttachResult.TRACKED_ELSEWHERE

    def mark_story_viewed(self, story_id: str) -> bool:
        """Advance last_viewed_at to now. Never moves it backwards."""
        with self._write_lock, session_scope(self._session_factory) as session:
            exists = session.execute(select(tables.Story.id).where(tables.Story.id == story_id)).first()
            if exists is None:
                logger.warning("Cannot mark unknown story %s as viewed", story_id)
                return False
            now = self._now()
            session.execute(
                update(tables.Story)
                .where(tables.Story.id == story_id, tables.Story.last_viewed_at < now)
                .values(last_viewed_at=now)
            )
        return True

    def unfollow_story(self, story_id: str) -> bool:
        """Delete a story and release its articles back to the candidate pool."""
        with self._write_lock, session_scope(self._session_factory) as session:
            released = session.execute(
                delete(tables.ArticleStory).where(tables.ArticleStory.story_id == story_id)
            ).rowcount
            deleted = session.execute(delete(tables.Story).where(tables.Story.id == story_id)).rowcount

        if deleted:
            logger.info("Unfollowed story %s (%d articles released)", story_id, released or 0)
        return bool(deleted)

    def list_tracked_stories(self) -> list[StoryWithUnreadCount]:
        """All stories, most recently updated first, with unread counts."""
        with session_scope(self._session_factory) as session:
            story_ids = list(
                session.execute(
                    select(tables.Story.id).order_by(tables.Story.updated_at.desc(), tables.Story.id)
                ).scalars()
            )
            stories = self._load_stories(session, story_ids)
        return [StoryWithUnreadCount(story=story, unread_count=story.unread_count()) for story in stories]

    def get_story(self, story_id: str) -> Story | None:
        with session_scope(self._session_factory) as session:
            stories = self._load_stories(session, [story_id])
        return stories[0] if stories else None

    def story_count(self) -> int:
        with session_scope(self._session_factory) as session:
            return session.execute(select(func.count()).select_from(tables.Story)).scalar_one()

    def is_article_tracked(self, article_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.get(tables.ArticleStory, article_id) is not None

    def get_story_embeddings(self, story_id: str) -> dict[str, list[float]]:
        return self.article_cache.get_story_embeddings(story_id)

    def get_candidate_articles_in_window(self, story: Story, window: TimeWindow) -> list[CandidateArticle]:
        """Untracked, embedded articles published inside window."""
        candidates = self.article_cache.get_untracked_articles_in_window(window)
        members = set(story.article_ids)
        return [
            candidate
            for candidate in candidates
            if candidate.article.id not in members and window.contains(candidate.article.published_at)
        ]

    def _load_stories(self, session: Session, story_ids: list[str]) -> list[Story]:
        """Build Story read models, preserving the order of story_ids."""
        if not story_ids:
            return []

        rows = session.execute(select(tables.Story).where(tables.Story.id.in_(story_ids))).scalars().all()
        stories_by_id = {
            row.id: Story(
                id=row.id,
                title=row.title,
                created_at=ensure_utc(row.created_at),
                updated_at=ensure_utc(row.updated_at),
                last_viewed_at=ensure_utc(row.last_viewed_at),
            )
            for row in rows
        }

        members_by_story: dict[str, list[TrackedArticle]] = defaultdict(list)
        member_rows = session.execute(
            select(tables.ArticleStory, tables.Article)
            .join(tables.Article, tables.Article.id == tables.ArticleStory.article_id)
            .where(tables.ArticleStory.story_id.in_(story_ids))
            .order_by(tables.Article.published_at, tables.Article.id)
        ).all()
        for membership, article in member_rows:
            members_by_story[membership.story_id].append(
                TrackedArticle(
                    article=row_to_article(article),
                    attached_at=ensure_utc(membership.attached_at),
                    is_novel=membership.is_novel,
                    has_new_perspective=membership.has_new_perspective,
                )
            )

        stories = []
        for story_id in story_ids:
            story = stories_by_id.get(story_id)
            if story is None:
                continue
            story.articles = members_by_story.get(story_id, [])
            stories.append(story)
        return stories
