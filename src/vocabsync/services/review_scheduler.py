"""Spaced-repetition state machine for a single progress record."""
from dataclasses import replace
from datetime import datetime, timedelta, UTC
from typing import Optional, Sequence

from vocabsync.config import settings
from vocabsync.models.sync_models import Outcome, ProgressSnapshot, ProgressStatus


def calculate_next_review(
    memory_level: int,
    now: datetime,
    intervals: Optional[Sequence[int]] = None,
) -> datetime:
    """Calculate the next review date for a memory level."""
    intervals = intervals or settings.learning.review_intervals
    memory_level = max(0, min(memory_level, len(intervals) - 1))
    return now + timedelta(days=intervals[memory_level])


def apply_outcome(
    snapshot: ProgressSnapshot,
    outcome: Outcome,
    now: Optional[datetime] = None,
    intervals: Optional[Sequence[int]] = None,
) -> ProgressSnapshot:
    """Return the record that results from answering a word.

    A known answer moves the word one memory level up (mastered at the top
    level); an unknown answer drops it back to level 1. Once a word has been
    answered it never returns to ``not_learned``.
    """
    now = now or datetime.now(UTC)
    intervals = intervals or settings.learning.review_intervals
    max_level = len(intervals) - 1
    outcome = Outcome(outcome)

    if outcome is Outcome.KNOWN:
        next_level = min(snapshot.memory_level + 1, max_level)
        return replace(
            snapshot,
            status=(
                ProgressStatus.MASTERED.value
                if next_level == max_level
                else ProgressStatus.NEED_REVIEW.value
            ),
            learned_at=snapshot.learned_at or now,
            last_review_at=now,
            next_review_at=calculate_next_review(next_level, now, intervals),
            review_count=snapshot.review_count + 1,
            memory_level=next_level,
        )

    return replace(
        snapshot,
        status=ProgressStatus.NEED_REVIEW.value,
        learned_at=snapshot.learned_at or now,
        last_review_at=now,
        next_review_at=calculate_next_review(1, now, intervals),
        error_count=snapshot.error_count + 1,
        memory_level=1,
    )
