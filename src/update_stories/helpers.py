"""Helper functions for update_stories CLI."""

from __future__ import annotations

import argparse


def parse_update_stories_args() -> argparse.Namespace:
    """Parse CLI arguments for update_stories."""

    parser = argparse.ArgumentParser(description="Match cached articles to tracked stories.")
    parser.add_argument("--config", default=None, help="Config name under configs/ (default: prod)")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and update stories on the configured interval",
    )

    # Output options
    parser.add_argument("--load-local", action="store_true", help="Save match outcomes to local file")
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory for --load-local output (default: output)",
    )

    return parser.parse_args()
