"""Common CLI helper utilities."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime

from common.datetime import parse_datetime


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure standard logging format for CLI tools."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def parse_timestamp(value: str, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 timestamp for argparse arguments.

    Args:
        value: Timestamp string, e.g. 2026-01-12T14:19:00Z.
        field_name: Name of the field for error messages.

    Returns:
        Timezone-aware UTC datetime.

    Raises:
        argparse.ArgumentTypeError: If the value is not a valid timestamp.
    """
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{field_name} must be an ISO-8601 timestamp") from exc


def parse_bias_category(value: str) -> int | None:
    """Parse a bias category argument; "none" means unrated."""
    if value.lower() in ("none", "null", ""):
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("bias-category must be an integer or 'none'") from exc
