"""Match cached articles against tracked stories.

For every tracked story:

* derive a time window from the story's most recently published member;
* fetch untracked, embedded candidates published inside the window;
* score each candidate by its best similarity to any member embedding;
* STRONG matches are attached to the story, WEAK matches are reported as
  possible matches only, NONE is discarded.

Novelty and new-perspective flags are computed for every STRONG or WEAK
match. They annotate the outcome and the stored membership; they do not
decide whether a STRONG match is attached.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from common.datetime import utc_now
from story_matching.models import CandidateArticle, MatchOutcome, MatchStrength, MatchSummary
from story_matching.novelty import is_novel_content
from story_matching.similarity import best_similarity, match_strength
from story_matching.source_diversity import has_new_perspective
from story_matching.time_window import calculate_window
from track_stories.connection import TransientStoreFailure
from track_stories.models import AttachResult, Story
from track_stories.store import StoryTrackingStore

logger = logging.getLogger(__name__)

CLOSE_CALL_THRESHOLD = 0.40


class MatchingPassFailed(Exception):
    """The pass could not run at all; the caller should retry later."""


def _cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class StoryUpdater:
    def __init__(
        self,
        store: StoryTrackingStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def run_matching_pass(self, cancel_event: threading.Event | None = None) -> list[MatchOutcome]:
        """Run one matching pass over all tracked stories.

        Stories processed before a cancellation keep their changes. A story
        whose pass fails is logged and skipped.

        Raises:
            MatchingPassFailed: If tracked stories cannot be listed.
        """
        try:
            entries = self._store.list_tracked_stories()
        except TransientStoreFailure as exc:
            raise MatchingPassFailed("Could not list tracked stories") from exc

        if not entries:
            logger.info("No tracked stories, skipping matching pass")
            return []

        logger.info("Matching candidates against %d tracked stories", len(entries))

        outcomes: list[MatchOutcome] = []
        processed = 0
        failed = 0
        for entry in entries:
            if _cancelled(cancel_event):
                logger.warning(
                    "Matching pass cancelled after %d of %d stories",
                    processed + failed,
                    len(entries),
                )
                break
            try:
                outcomes.extend(self.match_story(entry.story, cancel_event))
                processed += 1
            except Exception:
                failed += 1
                logger.exception("Matching failed for story %s, continuing", entry.story.id)

        logger.info(
            "Matching pass finished: %d stories processed, %d failed, %d candidates evaluated",
            processed,
            failed,
            len(outcomes),
        )
        return outcomes

    def match_story(self, story: Story, cancel_event: threading.Event | None = None) -> list[MatchOutcome]:
        """Evaluate window-restricted candidates for a single story."""
        reference_date = story.latest_published_at
        if reference_date is None:
            logger.warning("Story %s has no articles, skipping", story.id)
            return []

        member_embeddings = self._store.get_story_embeddings(story.id)
        if not member_embeddings:
            logger.info("Story %s has no embeddings, skipping", story.id)
            return []

        window = calculate_window(reference_date, self._clock())
        candidates = self._store.get_candidate_articles_in_window(story, window)
        logger.debug(
            "Story %s: %d member embeddings, %d candidates in window",
            story.id,
            len(member_embeddings),
            len(candidates),
        )

        members = [member.article for member in story.articles]
        outcomes = []
        for candidate in candidates:
            if _cancelled(cancel_event):
                break
            outcome = self._evaluate(story, candidate, list(member_embeddings.values()), members)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def _evaluate(
        self,
        story: Story,
        candidate: CandidateArticle,
        member_embeddings: list[list[float]],
        members: list,
    ) -> MatchOutcome | None:
        comparable = [e for e in member_embeddings if len(e) == len(candidate.embedding)]
        similarity = best_similarity(candidate.embedding, comparable)
        if similarity is None:
            logger.warning(
                "Candidate %s has no comparable embedding in story %s, skipping",
                candidate.article.id,
                story.id,
            )
            return None

        strength = match_strength(similarity)
        outcome = MatchOutcome(
            story_id=story.id,
            article_id=candidate.article.id,
            similarity=similarity,
            strength=strength,
        )
        logger.debug(
            "Candidate '%s' vs story %s: similarity=%.3f strength=%s",
            candidate.article.title[:40],
            story.id,
            similarity,
            strength.value,
        )

        if strength is MatchStrength.NONE:
            if similarity > CLOSE_CALL_THRESHOLD:
                logger.debug("Close call for '%s': %.3f", candidate.article.title, similarity)
            return outcome

        outcome.is_novel = is_novel_content(candidate.embedding, comparable)
        outcome.has_new_perspective = has_new_perspective(members, candidate.article)

        if strength is MatchStrength.STRONG:
            result = self._store.attach_article(
                story.id,
                candidate.article.id,
                is_novel=outcome.is_novel,
                has_new_perspective=outcome.has_new_perspective,
            )
            outcome.attached = result is AttachResult.ATTACHED
        else:
            logger.info(
                "Possible match for story %s: %s (similarity=%.3f)",
                story.id,
                candidate.article.id,
                similarity,
            )
        return outcome


def possible_matches(outcomes: list[MatchOutcome]) -> list[MatchOutcome]:
    """WEAK outcomes, surfaced for review without changing any story."""
    return [outcome for outcome in outcomes if outcome.strength is MatchStrength.WEAK]


def summarize_outcomes(outcomes: list[MatchOutcome]) -> MatchSummary:
    summary = MatchSummary()
    for outcome in outcomes:
        summary.evaluated += 1
        summary.story_ids.add(outcome.story_id)
        if outcome.strength is MatchStrength.STRONG:
            summary.strong += 1
        elif outcome.strength is MatchStrength.WEAK:
            summary.weak += 1
        if outcome.is_novel:
            summary.novel += 1
        if outcome.has_new_perspective:
            summary.new_perspective += 1
        if outcome.attached:
            summary.attached += 1
    return summary


def run_story_update(
    updater: StoryUpdater,
    cancel_event: threading.Event | None = None,
) -> list[MatchOutcome]:
    """One story update job: run the pass and log its statistics."""
    logger.info("Starting story update")
    outcomes = updater.run_matching_pass(cancel_event)
    summary = summarize_outcomes(outcomes)
    logger.info(
        "Story update complete: strong=%d (attached=%d) weak=%d novel=%d new_perspective=%d",
        summary.strong,
        summary.attached,
        summary.weak,
        summary.novel,
        summary.new_perspective,
    )
    return outcomes
