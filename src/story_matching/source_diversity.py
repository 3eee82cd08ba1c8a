"""Detect articles that bring a bias category a story does not cover yet."""

from __future__ import annotations

from typing import Any, Iterable

from common.utils import get_value


def existing_bias_categories(articles: Iterable[Any]) -> set[int]:
    """Distinct non-null bias categories among articles."""
    categories = set()
    for article in articles:
        category = get_value(article, "bias_category")
        if category is not None:
            categories.add(category)
    return categories


def has_new_perspective(story_articles: Iterable[Any], new_article: Any) -> bool:
    """True iff new_article is rated and its category is absent from the story."""
    category = get_value(new_article, "bias_category")
    if category is None:
        return False
    return category not in existing_bias_categories(story_articles)
