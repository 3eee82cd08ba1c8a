"""Age-tiered time windows for restricting match candidates.

Breaking news gets a tight window, older coverage a wider one:

    age < 24h        ->  +/- 48 hours
    24h <= age < 7d  ->  +/- 7 days
    age >= 7d        ->  +/- 14 days

Boundary ages fall into the wider tier. Window bounds are inclusive.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from common.datetime import ensure_utc, format_utc, utc_now
from story_matching.models import TimeWindow

BREAKING_THRESHOLD = timedelta(hours=24)
RECENT_THRESHOLD = timedelta(days=7)

BREAKING_WINDOW = timedelta(hours=48)
RECENT_WINDOW = timedelta(days=7)
OLD_WINDOW = timedelta(days=14)


def window_half_width(article_date: datetime, now: datetime | None = None) -> timedelta:
    """Half-width W of the window for an article published at article_date."""
    now = ensure_utc(now) if now is not None else utc_now()
    age = now - ensure_utc(article_date)

    if age < BREAKING_THRESHOLD:
        return BREAKING_WINDOW
    if age < RECENT_THRESHOLD:
        return RECENT_WINDOW
    return OLD_WINDOW


def calculate_window(article_date: datetime, now: datetime | None = None) -> TimeWindow:
    """Symmetric [article_date - W, article_date + W] window."""
    article_date = ensure_utc(article_date)
    half_width = window_half_width(article_date, now)
    return TimeWindow(start=article_date - half_width, end=article_date + half_width)


def calculate_window_strings(article_date: datetime, now: datetime | None = None) -> tuple[str, str]:
    """Window bounds as ISO-8601 UTC strings for textual query interfaces."""
    window = calculate_window(article_date, now)
    return format_utc(window.start), format_utc(window.end)


def is_within_window(
    source_date: datetime,
    candidate_date: datetime,
    now: datetime | None = None,
) -> bool:
    """Whether candidate_date falls inside the window derived from source_date."""
    return calculate_window(source_date, now).contains(ensure_utc(candidate_date))
