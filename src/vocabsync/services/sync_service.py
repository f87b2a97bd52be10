"""Service reconciling learning progress uploaded by client devices."""
import logging
import time
from typing import Any, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabsync import monitoring
from vocabsync.exceptions import SyncError, SyncValidationError
from vocabsync.models.models import UserWordProgress
from vocabsync.models.sync_models import (
    ClientProgress,
    ConflictReport,
    ProgressSnapshot,
    SyncReport,
)
from vocabsync.services.conflict_resolver import resolve
from vocabsync.services.notification_service import NotificationService
from vocabsync.services.progress_service import ProgressService
from vocabsync.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)


def parse_progress_batch(progress_data: Any) -> List[ClientProgress]:
    """Validate a raw batch; any malformed element rejects all of it."""
    if not isinstance(progress_data, Sequence) or isinstance(progress_data, (str, bytes)):
        raise SyncValidationError("progress data must be a list")
    if not progress_data:
        raise SyncValidationError("progress data must not be empty")
    return [ClientProgress.from_payload(index, item) for index, item in enumerate(progress_data)]


class SyncService:
    """Service applying progress sync batches inside one transaction."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.progress_service = ProgressService(db)
        self.statistics_service = StatisticsService(db)
        self.notification_service = notification_service

    def sync_progress(self, user_id: int, progress_data: Any) -> SyncReport:
        """Merge a batch of client progress records into the store.

        Either every element is applied or, on any failure, none is.
        Elements whose server copy is kept still count as synced. The
        user's learned and mastered totals are recounted in the same
        transaction.
        """
        try:
            items = parse_progress_batch(progress_data)
        except SyncValidationError as e:
            monitoring.sync_batches.labels(kind="progress", outcome="invalid").inc()
            logger.warning(f"Rejected progress batch from user {user_id}: {e}")
            raise

        started = time.perf_counter()
        report = SyncReport()
        try:
            for item in items:
                self._sync_item(user_id, item, report)
            self.statistics_service.refresh_totals(user_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.sync_batches.labels(kind="progress", outcome="failed").inc()
            monitoring.db_errors.labels(error_type=type(e).__name__).inc()
            logger.exception(f"Progress sync for user {user_id} rolled back")
            raise SyncError(f"sync failed: {e}") from e
        except Exception:
            self.db.rollback()
            monitoring.sync_batches.labels(kind="progress", outcome="failed").inc()
            raise

        monitoring.batch_duration.labels(kind="progress").observe(time.perf_counter() - started)
        monitoring.sync_batches.labels(kind="progress", outcome="committed").inc()
        monitoring.progress_synced.inc(report.synced_count)
        for conflict in report.conflicts:
            monitoring.sync_conflicts.labels(resolution=conflict.resolution.value).inc()

        logger.info(
            f"Synced {report.synced_count} progress records for user {user_id} "
            f"with {len(report.conflicts)} conflicts"
        )

        if self.notification_service and report.conflicts:
            self.notification_service.notify_sync_conflicts(user_id, report)

        return report

    def _sync_item(self, user_id: int, item: ClientProgress, report: SyncReport) -> None:
        progress = self.progress_service.get_progress(user_id, item.word_id, item.vocabulary_list_id)

        if progress is None:
            progress = UserWordProgress(
                user_id=user_id,
                word_id=item.word_id,
                vocabulary_list_id=item.vocabulary_list_id,
                **item.overlay(ProgressSnapshot()).as_dict(),
            )
            self.db.add(progress)
            # Make the row visible to later elements of the same batch
            self.db.flush()
            report.synced_count += 1
            logger.debug(f"Inserted progress {item.key} for user {user_id}")
            return

        result = resolve(progress.to_snapshot(), item)
        if result.updated:
            progress.apply_snapshot(result.snapshot)
        report.synced_count += 1

        if result.conflict:
            report.conflicts.append(
                ConflictReport(
                    word_id=item.word_id,
                    vocabulary_list_id=item.vocabulary_list_id,
                    resolution=result.resolution,
                )
            )
            logger.debug(
                f"Resolved progress {item.key} for user {user_id}: {result.resolution.value}"
            )
