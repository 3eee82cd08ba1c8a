"""Shared fixtures: an in-memory story store driven by a virtual clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from story_matching.models import Article
from track_stories.connection import create_db_engine, init_db, make_session_factory
from track_stories.store import StoryTrackingStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now = self.now + delta
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 2, 9, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory, clock) -> StoryTrackingStore:
    return StoryTrackingStore(session_factory, clock=clock)


@pytest.fixture
def make_article(clock):
    def _make(
        slug: str,
        title: str | None = None,
        hours_ago: float = 1.0,
        bias_category: int | None = None,
        source: str = "wire",
    ) -> Article:
        return Article(
            id=f"https://news.example.com/{slug}",
            title=title or slug.replace("-", " ").title(),
            published_at=clock.now - timedelta(hours=hours_ago),
            source=source,
            bias_category=bias_category,
        )

    return _make
