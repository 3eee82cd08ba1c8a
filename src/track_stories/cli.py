"""CLI for following, viewing and listing tracked stories."""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from common.cli_helpers import setup_logging
from common.config import get_config, load_config, set_config
from story_matching.models import Article
from track_stories.connection import TransientStoreFailure
from track_stories.helpers import open_store, parse_track_stories_args
from track_stories.store import ArticleAlreadyTracked, LimitReached

load_dotenv()

logger = logging.getLogger(__name__)


def _print_stories(store) -> None:
    stories = store.list_tracked_stories()
    if not stories:
        print("No tracked stories.")
        return

    for entry in stories:
        story = entry.story
        print(f"{story.id}  [{entry.unread_count} unread / {len(story.articles)} articles]  {story.title}")
        for member in story.articles:
            flags = []
            if member.is_novel:
                flags.append("novel")
            if member.has_new_perspective:
                flags.append("new perspective")
            suffix = f" ({', '.join(flags)})" if flags else ""
            print(f"- {member.article.published_at.isoformat()} {member.article.source}: {member.article.title}{suffix}")
        print()


def main() -> None:
    args = parse_track_stories_args()
    if args.config:
        set_config(load_config(args.config))
    config = get_config()
    setup_logging(config.log_level)

    store = open_store(config.database)

    try:
        if args.command == "follow":
            article = Article(
                id=args.url,
                title=args.title,
                published_at=args.published_at,
                source=args.source,
                text=args.text,
                bias_category=args.bias_category,
            )
            story = store.follow_article(article)
            print(story.id)
        elif args.command == "unfollow":
            if not store.unfollow_story(args.story_id):
                logger.warning("No story %s", args.story_id)
                sys.exit(1)
        elif args.command == "view":
            if not store.mark_story_viewed(args.story_id):
                sys.exit(1)
        elif args.command == "list":
            _print_stories(store)
    except (LimitReached, ArticleAlreadyTracked) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except TransientStoreFailure:
        logger.exception("Story store unavailable")
        sys.exit(2)


if __name__ == "__main__":
    main()
