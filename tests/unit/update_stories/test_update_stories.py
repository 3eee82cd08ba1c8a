"""Tests for update_stories.update_stories module."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from story_matching.models import MatchOutcome, MatchStrength
from track_stories.connection import TransientStoreFailure
from update_stories.update_stories import (
    MatchingPassFailed,
    StoryUpdater,
    possible_matches,
    run_story_update,
    summarize_outcomes,
)

# Unit vectors at known angles to [1, 0]: cos = 0.9, 0.6, 0.2.
STRONG_VEC = [0.9, 0.4359]
WEAK_VEC = [0.6, 0.8]
NONE_VEC = [0.2, 0.9798]


def _seed_story(store, make_article, slug="seed", embedding=(1.0, 0.0), bias_category=0):
    seed = make_article(slug, bias_category=bias_category)
    story = store.follow_article(seed)
    store.article_cache.save_embedding(seed.id, list(embedding), "test-model")
    return story


def _add_candidate(store, make_article, slug, embedding, **kwargs):
    article = make_article(slug, **kwargs)
    store.article_cache.save_articles([article])
    if embedding is not None:
        store.article_cache.save_embedding(article.id, list(embedding), "test-model")
    return article


class TestRunMatchingPass:
    def test_tiered_outcomes(self, store, clock, make_article) -> None:
        story = _seed_story(store, make_article)
        strong = _add_candidate(store, make_article, "strong", STRONG_VEC, bias_category=2)
        weak = _add_candidate(store, make_article, "weak", WEAK_VEC)
        none = _add_candidate(store, make_article, "none", NONE_VEC)

        outcomes = StoryUpdater(store, clock=clock).run_matching_pass()
        by_article = {o.article_id: o for o in outcomes}

        assert len(outcomes) == 3
        assert by_article[strong.id].strength is MatchStrength.STRONG
        assert by_article[strong.id].attached is True
        assert by_article[strong.id].has_new_perspective is True
        assert by_article[weak.id].strength is MatchStrength.WEAK
        assert by_article[weak.id].attached is False
        assert by_article[none.id].strength is MatchStrength.NONE

        members = store.get_story(story.id).article_ids
        assert strong.id in members
        assert weak.id not in members
        assert none.id not in members

    def test_strong_match_attached_even_when_not_novel(self, store, clock, make_article) -> None:
        story = _seed_story(store, make_article)
        duplicate = _add_candidate(store, make_article, "restatement", [1.0, 0.01])

        [outcome] = StoryUpdater(store, clock=clock).run_matching_pass()

        assert outcome.strength is MatchStrength.STRONG
        assert outcome.is_novel is False
        assert outcome.attached is True
        assert duplicate.id in store.get_story(story.id).article_ids

    def test_novel_flag_for_new_development(self, store, clock, make_article) -> None:
        _seed_story(store, make_article)
        _add_candidate(store, make_article, "development", [0.8, 0.6])

        [outcome] = StoryUpdater(store, clock=clock).run_matching_pass()
        assert outcome.strength is MatchStrength.STRONG
        assert outcome.similarity == pytest.approx(0.8)
        assert outcome.is_novel is True

    def test_candidates_without_embeddings_are_skipped(self, store, clock, make_article) -> None:
        _seed_story(store, make_article)
        _add_candidate(store, make_article, "not-embedded-yet", None)

        assert StoryUpdater(store, clock=clock).run_matching_pass() == []

    def test_story_without_embeddings_is_skipped(self, store, clock, make_article) -> None:
        store.follow_article(make_article("unembedded-seed"))
        _add_candidate(store, make_article, "candidate", STRONG_VEC)

        assert StoryUpdater(store, clock=clock).run_matching_pass() == []

    def test_candidates_outside_window_ignored(self, store, clock, make_article) -> None:
        _seed_story(store, make_article)
        _add_candidate(store, make_article, "last-month", STRONG_VEC, hours_ago=24 * 30)

        assert StoryUpdater(store, clock=clock).run_matching_pass() == []

    def test_uses_best_member_similarity(self, store, clock, make_article) -> None:
        story = _seed_story(store, make_article)
        second = _add_candidate(store, make_article, "second-member", [0.0, 1.0])
        store.attach_article(story.id, second.id)
        candidate = _add_candidate(store, make_article, "near-second", [0.05, 1.0])

        [outcome] = StoryUpdater(store, clock=clock).run_matching_pass()
        assert outcome.article_id == candidate.id
        assert outcome.strength is MatchStrength.STRONG

    def test_article_attached_to_one_story_only(self, store, clock, make_article) -> None:
        first = _seed_story(store, make_article, slug="seed-a")
        second = _seed_story(store, make_article, slug="seed-b")
        shared = _add_candidate(store, make_article, "shared", STRONG_VEC)

        outcomes = StoryUpdater(store, clock=clock).run_matching_pass()

        assert sum(1 for o in outcomes if o.attached) == 1
        owners = [s.id for s in (first, second) if shared.id in store.get_story(s.id).article_ids]
        assert len(owners) == 1

    def test_mismatched_candidate_dimension_skipped(self, store, clock, make_article) -> None:
        _seed_story(store, make_article)
        _add_candidate(store, make_article, "other-model", [1.0, 0.0, 0.0])
        good = _add_candidate(store, make_article, "good", STRONG_VEC)

        outcomes = StoryUpdater(store, clock=clock).run_matching_pass()
        assert [o.article_id for o in outcomes] == [good.id]

    def test_second_pass_is_stable(self, store, clock, make_article) -> None:
        _seed_story(store, make_article)
        strong = _add_candidate(store, make_article, "strong", STRONG_VEC)
        _add_candidate(store, make_article, "weak", WEAK_VEC)

        updater = StoryUpdater(store, clock=clock)
        updater.run_matching_pass()
        again = updater.run_matching_pass()

        assert strong.id not in [o.article_id for o in again]
        assert len(again) == 1

    def test_no_stories(self, store, clock) -> None:
        assert StoryUpdater(store, clock=clock).run_matching_pass() == []


class TestFailureHandling:
    def test_listing_failure_is_retryable(self, clock) -> None:
        store = MagicMock()
        store.list_tracked_stories.side_effect = TransientStoreFailure("db down")

        with pytest.raises(MatchingPassFailed):
            StoryUpdater(store, clock=clock).run_matching_pass()

    @pytest.mark.parametrize(
        "error",
        [TransientStoreFailure("disk I/O error"), KeyError("embedding"), AttributeError("published_at")],
    )
    def test_one_failing_story_does_not_abort_others(self, store, clock, make_article, error) -> None:
        failing = _seed_story(store, make_article, slug="seed-a")
        healthy = _seed_story(store, make_article, slug="seed-b", embedding=(0.0, 1.0))
        candidate = _add_candidate(store, make_article, "for-b", [0.05, 1.0])

        original = store.get_story_embeddings

        def flaky(story_id):
            if story_id == failing.id:
                raise error
            return original(story_id)

        store.get_story_embeddings = flaky
        outcomes = StoryUpdater(store, clock=clock).run_matching_pass()

        assert [(o.story_id, o.article_id) for o in outcomes] == [(healthy.id, candidate.id)]
        assert candidate.id in store.get_story(healthy.id).article_ids

    def test_cancel_before_start_changes_nothing(self, store, clock, make_article) -> None:
        story = _seed_story(store, make_article)
        _add_candidate(store, make_article, "strong", STRONG_VEC)
        cancel = threading.Event()
        cancel.set()

        assert StoryUpdater(store, clock=clock).run_matching_pass(cancel) == []
        assert len(store.get_story(story.id).articles) == 1

    def test_cancel_keeps_completed_stories(self, store, clock, make_article) -> None:
        _seed_story(store, make_article, slug="seed-a")
        _seed_story(store, make_article, slug="seed-b", embedding=(0.0, 1.0))
        _add_candidate(store, make_article, "strong", STRONG_VEC)

        cancel = threading.Event()
        updater = StoryUpdater(store, clock=clock)
        original = updater.match_story
        calls = []

        def match_then_cancel(story, cancel_event=None):
            calls.append(story.id)
            result = original(story, cancel_event)
            cancel.set()
            return result

        updater.match_story = match_then_cancel
        outcomes = updater.run_matching_pass(cancel)

        assert len(calls) == 1
        assert {o.story_id for o in outcomes} <= {calls[0]}


class TestSummaries:
    OUTCOMES = [
        MatchOutcome("s1", "a", 0.9, MatchStrength.STRONG, is_novel=True, attached=True),
        MatchOutcome("s1", "b", 0.6, MatchStrength.WEAK, has_new_perspective=True),
        MatchOutcome("s2", "c", 0.1, MatchStrength.NONE),
    ]

    def test_summarize_outcomes(self) -> None:
        summary = summarize_outcomes(self.OUTCOMES)
        assert summary.evaluated == 3
        assert summary.strong == 1
        assert summary.weak == 1
        assert summary.novel == 1
        assert summary.new_perspective == 1
        assert summary.attached == 1
        assert summary.story_ids == {"s1", "s2"}

    def test_possible_matches(self) -> None:
        assert [o.article_id for o in possible_matches(self.OUTCOMES)] == ["b"]

    def test_run_story_update_returns_outcomes(self) -> None:
        updater = MagicMock()
        updater.run_matching_pass.return_value = self.OUTCOMES
        assert run_story_update(updater) == self.OUTCOMES
        updater.run_matching_pass.assert_called_once_with(None)
