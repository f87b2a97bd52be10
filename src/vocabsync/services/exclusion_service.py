"""Service for words a user has hidden from a vocabulary list."""
import logging
import time
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabsync import monitoring
from vocabsync.exceptions import SyncError, SyncValidationError
from vocabsync.models.models import UserWordExclusion
from vocabsync.models.sync_models import ExclusionEntry, ExclusionSyncReport

logger = logging.getLogger(__name__)


class ExclusionService:
    """Service for per-user word exclusions."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_exclusion(
        self, user_id: int, word_id: int, vocabulary_list_id: int
    ) -> Optional[UserWordExclusion]:
        """Get the exclusion marker for a (user, word, list) key."""
        return (
            self.db.query(UserWordExclusion)
            .filter(
                and_(
                    UserWordExclusion.user_id == user_id,
                    UserWordExclusion.word_id == word_id,
                    UserWordExclusion.vocabulary_list_id == vocabulary_list_id,
                )
            )
            .first()
        )

    def is_excluded(self, user_id: int, word_id: int, vocabulary_list_id: int) -> bool:
        """Check whether the user has hidden the word in the list."""
        return self.get_exclusion(user_id, word_id, vocabulary_list_id) is not None

    def _add_exclusion(
        self,
        user_id: int,
        word_id: int,
        vocabulary_list_id: int,
        excluded_at: Optional[datetime] = None,
    ) -> bool:
        if self.is_excluded(user_id, word_id, vocabulary_list_id):
            return False
        self.db.add(
            UserWordExclusion(
                user_id=user_id,
                word_id=word_id,
                vocabulary_list_id=vocabulary_list_id,
                excluded_at=excluded_at or datetime.now(UTC),
            )
        )
        self.db.flush()
        return True

    def exclude_word(self, user_id: int, word_id: int, vocabulary_list_id: int) -> bool:
        """Hide a word from a list. Returns False if it was already hidden."""
        added = self._add_exclusion(user_id, word_id, vocabulary_list_id)
        self.db.commit()
        return added

    def restore_word(self, user_id: int, word_id: int, vocabulary_list_id: int) -> bool:
        """Show a hidden word again. Returns False if it was not hidden."""
        exclusion = self.get_exclusion(user_id, word_id, vocabulary_list_id)
        if not exclusion:
            return False
        self.db.delete(exclusion)
        self.db.commit()
        return True

    def batch_exclude(
        self, user_id: int, word_ids: Iterable[int], vocabulary_list_id: int
    ) -> int:
        """Hide several words from a list and return how many were newly hidden."""
        count = 0
        for word_id in word_ids:
            if self._add_exclusion(user_id, word_id, vocabulary_list_id):
                count += 1
        self.db.commit()
        return count

    def get_excluded_word_ids(self, user_id: int, vocabulary_list_id: int) -> List[int]:
        """Get ids of the words the user has hidden in a list."""
        rows = (
            self.db.query(UserWordExclusion.word_id)
            .filter(
                UserWordExclusion.user_id == user_id,
                UserWordExclusion.vocabulary_list_id == vocabulary_list_id,
            )
            .all()
        )
        return [row.word_id for row in rows]

    def get_exclusion_data(
        self, user_id: int, vocabulary_list_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get exclusion markers for download to a client."""
        query = self.db.query(UserWordExclusion).filter(UserWordExclusion.user_id == user_id)
        if vocabulary_list_id is not None:
            query = query.filter(UserWordExclusion.vocabulary_list_id == vocabulary_list_id)
        return [exclusion.to_dict() for exclusion in query.order_by(UserWordExclusion.id).all()]

    def sync_exclusions(self, user_id: int, exclusions: Any) -> ExclusionSyncReport:
        """Add every exclusion the server does not know about yet.

        Markers that already exist are skipped; ``synced_count`` is the
        number of markers created.
        """
        try:
            entries = self._parse_batch(exclusions)
        except SyncValidationError as e:
            monitoring.sync_batches.labels(kind="exclusion", outcome="invalid").inc()
            logger.warning(f"Rejected exclusion batch from user {user_id}: {e}")
            raise

        started = time.perf_counter()
        report = ExclusionSyncReport()
        try:
            for entry in entries:
                if self._add_exclusion(
                    user_id, entry.word_id, entry.vocabulary_list_id, entry.excluded_at
                ):
                    report.synced_count += 1
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.sync_batches.labels(kind="exclusion", outcome="failed").inc()
            monitoring.db_errors.labels(error_type=type(e).__name__).inc()
            logger.exception(f"Exclusion sync for user {user_id} rolled back")
            raise SyncError(f"sync failed: {e}") from e
        except Exception:
            self.db.rollback()
            monitoring.sync_batches.labels(kind="exclusion", outcome="failed").inc()
            raise

        monitoring.batch_duration.labels(kind="exclusion").observe(time.perf_counter() - started)
        monitoring.sync_batches.labels(kind="exclusion", outcome="committed").inc()
        monitoring.exclusions_synced.inc(report.synced_count)
        logger.info(f"Synced {report.synced_count} new exclusions for user {user_id}")
        return report

    @staticmethod
    def _parse_batch(exclusions: Any) -> List[ExclusionEntry]:
        if not isinstance(exclusions, Sequence) or isinstance(exclusions, (str, bytes)):
            raise SyncValidationError("exclusion data must be a list")
        if not exclusions:
            raise SyncValidationError("exclusion data must not be empty")
        return [ExclusionEntry.from_payload(index, item) for index, item in enumerate(exclusions)]
