"""CLI entry point for story updates: one manual pass, or a periodic loop."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from datetime import timedelta

from dotenv import load_dotenv

from common.cli_helpers import setup_logging
from common.config import get_config, load_config, set_config
from common.local_io import save_jsonl_records_local
from track_stories.helpers import open_store
from update_stories.helpers import parse_update_stories_args
from update_stories.scheduler import PeriodicTrigger, battery_not_low
from update_stories.update_stories import MatchingPassFailed, StoryUpdater, run_story_update

load_dotenv()

logger = logging.getLogger(__name__)


def main() -> None:
    args = parse_update_stories_args()
    if args.config:
        set_config(load_config(args.config))
    config = get_config()
    setup_logging(config.log_level)

    updater = StoryUpdater(open_store(config.database))
    stop_event = threading.Event()

    def job():
        outcomes = run_story_update(updater, cancel_event=stop_event)
        if args.load_local and outcomes:
            save_jsonl_records_local(outcomes, "match_outcomes", output_dir=args.output_dir)
        return outcomes

    scheduler = config.scheduler
    trigger = PeriodicTrigger(
        job,
        interval=scheduler.interval,
        preconditions=[battery_not_low] if scheduler.require_battery_not_low else [],
        initial_backoff=timedelta(seconds=scheduler.initial_backoff_seconds),
        max_backoff=timedelta(seconds=scheduler.max_backoff_seconds),
    )

    if not args.watch:
        try:
            trigger.run_now()
        except MatchingPassFailed:
            logger.exception("Story update failed")
            sys.exit(1)
        return

    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    try:
        trigger.run_forever(stop_event, poll_seconds=scheduler.poll_seconds)
    except KeyboardInterrupt:
        stop_event.set()


if __name__ == "__main__":
    main()
