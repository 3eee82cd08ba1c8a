"""Article cache queries: articles, their embeddings, and tracked status."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from common.datetime import ensure_utc, utc_now
from story_matching.models import Article, CandidateArticle, TimeWindow
from track_stories import tables
from track_stories.connection import insert_ignore, session_scope

logger = logging.getLogger(__name__)


def coerce_embedding(value: Any) -> list[float] | None:
    """Return value as a list of floats, or None if it is not a vector."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list):
            value = parsed
        else:
            return None
    if hasattr(value, "tolist"):
        value = value.tolist()
    if isinstance(value, (list, tuple)):
        try:
            return [float(v) for v in value]
        except (TypeError, ValueError):
            return None
    return None


def row_to_article(row: tables.Article) -> Article:
    return Article(
        id=row.id,
        title=row.title,
        published_at=ensure_utc(row.published_at),
        source=row.source,
        text=row.text,
        bias_category=row.bias_category,
        ingested_at=ensure_utc(row.ingested_at),
    )


def article_values(article: Article, now: datetime) -> dict[str, Any]:
    return {
        "id": article.id,
        "source": article.source,
        "title": article.title,
        "text": article.text,
        "bias_category": article.bias_category,
        "published_at": ensure_utc(article.published_at),
        "ingested_at": ensure_utc(article.ingested_at or now),
    }


class ArticleCache:
    """Read/write access to cached articles and their embeddings."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def save_articles(self, articles: Iterable[Article]) -> int:
        """Insert articles that are not cached yet. Returns the number inserted."""
        now = self._clock()
        inserted = 0
        skipped = 0
        with session_scope(self._session_factory) as session:
            for article in articles:
                if insert_ignore(session, tables.Article, article_values(article, now), ["id"]):
                    inserted += 1
                else:
                    skipped += 1
        logger.info("Cached %d articles (%d already present)", inserted, skipped)
        return inserted

    def save_embedding(self, article_id: str, embedding: list[float], embedding_model: str) -> bool:
        """Record an article's embedding. Embeddings are write-once."""
        vector = coerce_embedding(embedding)
        if not vector:
            raise ValueError(f"Invalid embedding for article {article_id}")
        with session_scope(self._session_factory) as session:
            inserted = insert_ignore(
                session,
                tables.ArticleEmbedding,
                {
                    "article_id": article_id,
                    "embedding": vector,
                    "embedding_model": embedding_model,
                    "created_at": ensure_utc(self._clock()),
                },
                ["article_id"],
            )
        return inserted > 0

    def get_article(self, article_id: str) -> Article | None:
        with session_scope(self._session_factory) as session:
            row = session.get(tables.Article, article_id)
            return row_to_article(row) if row is not None else None

    def get_untracked_articles_in_window(self, window: TimeWindow) -> list[CandidateArticle]:
        """Articles published within window, not in any story, with an embedding."""
        stmt = (
            select(tables.Article, tables.ArticleEmbedding.embedding)
            .join(tables.ArticleEmbedding, tables.ArticleEmbedding.article_id == tables.Article.id)
            .outerjoin(tables.ArticleStory, tables.ArticleStory.article_id == tables.Article.id)
            .where(
                tables.Article.published_at >= ensure_utc(window.start),
                tables.Article.published_at <= ensure_utc(window.end),
                tables.ArticleStory.article_id.is_(None),
            )
            .order_by(tables.Article.published_at, tables.Article.id)
        )

        candidates = []
        with session_scope(self._session_factory) as session:
            for row, raw_embedding in session.execute(stmt).all():
                embedding = coerce_embedding(raw_embedding)
                if not embedding:
                    logger.warning("Skipping article %s with malformed embedding", row.id)
                    continue
                candidates.append(CandidateArticle(article=row_to_article(row), embedding=embedding))

        logger.debug(
            "Found %d untracked candidates between %s and %s",
            len(candidates),
            window.start.isoformat(),
            window.end.isoformat(),
        )
        return candidates

    def get_story_embeddings(self, story_id: str) -> dict[str, list[float]]:
        """Embeddings of a story's members, keyed by article id."""
        stmt = (
            select(tables.ArticleStory.article_id, tables.ArticleEmbedding.embedding)
            .join(tables.ArticleEmbedding, tables.ArticleEmbedding.article_id == tables.ArticleStory.article_id)
            .where(tables.ArticleStory.story_id == story_id)
        )
        result = {}
        with session_scope(self._session_factory) as session:
            for article_id, raw_embedding in session.execute(stmt).all():
                embedding = coerce_embedding(raw_embedding)
                if embedding:
                    result[article_id] = embedding
        return result
