"""Helper functions for track_stories CLI."""

from __future__ import annotations

import argparse

from common.cli_helpers import parse_bias_category, parse_timestamp
from common.config import DatabaseConfig
from track_stories.connection import create_db_engine, init_db, make_session_factory
from track_stories.store import StoryTrackingStore


def open_store(database: DatabaseConfig) -> StoryTrackingStore:
    """Connect to the configured database and return a store over it."""
    engine = create_db_engine(database.url, echo=database.echo)
    init_db(engine)
    return StoryTrackingStore(make_session_factory(engine))


def parse_track_stories_args() -> argparse.Namespace:
    """Parse CLI arguments for track_stories."""

    parser = argparse.ArgumentParser(description="Manage tracked stories.")
    parser.add_argument("--config", default=None, help="Config name under configs/ (default: prod)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    follow = subparsers.add_parser("follow", help="Start tracking a story from an article")
    follow.add_argument("--url", required=True, help="Canonical article URL")
    follow.add_argument("--title", required=True, help="Article headline")
    follow.add_argument("--source", required=True, help="Source identifier, e.g. bbc-news")
    follow.add_argument(
        "--published-at",
        required=True,
        type=lambda v: parse_timestamp(v, "published-at"),
        help="Publication time (ISO-8601)",
    )
    follow.add_argument(
        "--bias-category",
        type=parse_bias_category,
        default=None,
        help="Source bias category, e.g. -2..2 (default: unrated)",
    )
    follow.add_argument("--text", default=None, help="Optional article body")

    unfollow = subparsers.add_parser("unfollow", help="Stop tracking a story")
    unfollow.add_argument("story_id")

    view = subparsers.add_parser("view", help="Mark a story as viewed")
    view.add_argument("story_id")

    subparsers.add_parser("list", help="List tracked stories with unread counts")

    return parser.parse_args()
