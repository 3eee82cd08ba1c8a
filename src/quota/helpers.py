"""Helper functions for quota CLI."""

from __future__ import annotations

import argparse


def parse_quota_args() -> argparse.Namespace:
    """Parse CLI arguments for quota."""

    parser = argparse.ArgumentParser(description="Inspect or adjust the remote-call quota.")
    parser.add_argument("--config", default=None, help="Config name under configs/ (default: prod)")

    # Update options
    parser.add_argument("--clear", action="store_true", help="Forget the rate limit and remaining count")
    parser.add_argument(
        "--rate-limited-for",
        type=int,
        default=None,
        metavar="SECONDS",
        help="Record a rate-limit response lasting SECONDS (0 uses the configured default)",
    )
    parser.add_argument(
        "--remaining",
        type=int,
        default=None,
        help="Record the remaining call count reported by the API (negative means unknown)",
    )

    return parser.parse_args()
