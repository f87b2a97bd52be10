"""Service for reading and updating per-word learning progress."""
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from vocabsync import monitoring
from vocabsync.models.models import UserWordProgress
from vocabsync.models.sync_models import Outcome, ProgressSnapshot, ProgressStatus
from vocabsync.services.review_scheduler import apply_outcome

logger = logging.getLogger(__name__)


class ProgressService:
    """Service for the progress record store."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_progress(
        self, user_id: int, word_id: int, vocabulary_list_id: int
    ) -> Optional[UserWordProgress]:
        """Get the progress record for a (user, word, list) key."""
        return (
            self.db.query(UserWordProgress)
            .filter(
                and_(
                    UserWordProgress.user_id == user_id,
                    UserWordProgress.word_id == word_id,
                    UserWordProgress.vocabulary_list_id == vocabulary_list_id,
                )
            )
            .first()
        )

    def get_or_create_progress(
        self, user_id: int, word_id: int, vocabulary_list_id: int
    ) -> UserWordProgress:
        """Get a progress record or add a fresh, not yet learned one."""
        progress = self.get_progress(user_id, word_id, vocabulary_list_id)
        if progress is None:
            progress = UserWordProgress(
                user_id=user_id,
                word_id=word_id,
                vocabulary_list_id=vocabulary_list_id,
                **ProgressSnapshot().as_dict(),
            )
            self.db.add(progress)
            self.db.flush()
        return progress

    def mark_known(
        self, user_id: int, word_id: int, vocabulary_list_id: int, now: Optional[datetime] = None
    ) -> UserWordProgress:
        """Record that the user knew the word."""
        return self._apply(user_id, word_id, vocabulary_list_id, Outcome.KNOWN, now)

    def mark_unknown(
        self, user_id: int, word_id: int, vocabulary_list_id: int, now: Optional[datetime] = None
    ) -> UserWordProgress:
        """Record that the user did not know the word."""
        return self._apply(user_id, word_id, vocabulary_list_id, Outcome.UNKNOWN, now)

    def _apply(
        self,
        user_id: int,
        word_id: int,
        vocabulary_list_id: int,
        outcome: Outcome,
        now: Optional[datetime],
    ) -> UserWordProgress:
        progress = self.get_or_create_progress(user_id, word_id, vocabulary_list_id)
        progress.apply_snapshot(apply_outcome(progress.to_snapshot(), outcome, now))
        self.db.commit()
        self.db.refresh(progress)

        monitoring.review_outcomes.labels(outcome=outcome.value).inc()
        logger.info(
            f"User {user_id} answered word {word_id} in list {vocabulary_list_id} as "
            f"{outcome.value}: level {progress.memory_level}, status {progress.status}"
        )
        return progress

    def get_due_reviews(
        self, user_id: int, vocabulary_list_id: int, now: Optional[datetime] = None
    ) -> List[UserWordProgress]:
        """Get words of a list that are due for review."""
        now = now or datetime.now(UTC)
        return (
            self.db.query(UserWordProgress)
            .filter(
                and_(
                    UserWordProgress.user_id == user_id,
                    UserWordProgress.vocabulary_list_id == vocabulary_list_id,
                    UserWordProgress.status == ProgressStatus.NEED_REVIEW.value,
                    UserWordProgress.next_review_at <= now,
                )
            )
            .order_by(UserWordProgress.next_review_at)
            .all()
        )

    def get_wrong_words(self, user_id: int, vocabulary_list_id: int) -> List[UserWordProgress]:
        """Get words of a list the user answered wrong at least once."""
        return (
            self.db.query(UserWordProgress)
            .filter(
                and_(
                    UserWordProgress.user_id == user_id,
                    UserWordProgress.vocabulary_list_id == vocabulary_list_id,
                    UserWordProgress.error_count > 0,
                )
            )
            .order_by(UserWordProgress.error_count.desc())
            .all()
        )

    def count_by_status(
        self, user_id: int, status: ProgressStatus, vocabulary_list_id: Optional[int] = None
    ) -> int:
        """Count the user's records with the given status."""
        query = self.db.query(UserWordProgress).filter(
            UserWordProgress.user_id == user_id,
            UserWordProgress.status == status.value,
        )
        if vocabulary_list_id is not None:
            query = query.filter(UserWordProgress.vocabulary_list_id == vocabulary_list_id)
        return query.count()

    def count_learned(self, user_id: int) -> int:
        """Count words the user has answered at least once."""
        return (
            self.db.query(UserWordProgress)
            .filter(
                UserWordProgress.user_id == user_id,
                UserWordProgress.learned_at.isnot(None),
            )
            .count()
        )

    def get_list_statistics(
        self, user_id: int, vocabulary_list_id: int, total_words: int
    ) -> Dict[str, Any]:
        """Get the user's progress through a list of ``total_words`` words."""
        mastered = self.count_by_status(user_id, ProgressStatus.MASTERED, vocabulary_list_id)
        need_review = self.count_by_status(user_id, ProgressStatus.NEED_REVIEW, vocabulary_list_id)

        return {
            "total": total_words,
            "mastered": mastered,
            "need_review": need_review,
            "not_learned": max(0, total_words - mastered - need_review),
            "progress": round(mastered / total_words * 100, 2) if total_words > 0 else 0,
        }

    def get_progress_data(
        self,
        user_id: int,
        vocabulary_list_id: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Get progress rows for download to a client."""
        query = self.db.query(UserWordProgress).filter(UserWordProgress.user_id == user_id)

        if vocabulary_list_id is not None:
            query = query.filter(UserWordProgress.vocabulary_list_id == vocabulary_list_id)
        if since is not None:
            query = query.filter(UserWordProgress.last_review_at > since)

        return [progress.to_dict() for progress in query.order_by(UserWordProgress.id).all()]
