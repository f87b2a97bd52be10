"""Service for learning totals, daily records and the continuous-day streak."""
import logging
from datetime import date, datetime, timedelta, UTC
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from vocabsync import monitoring
from vocabsync.config import settings
from vocabsync.models.models import DailyLearningRecord, UserStatistics
from vocabsync.models.sync_models import ProgressStatus, to_date
from vocabsync.services.notification_service import NotificationService
from vocabsync.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

MERGED_COUNTERS = (
    "total_days",
    "continuous_days",
    "total_words_learned",
    "total_words_mastered",
)


def _today() -> date:
    return datetime.now(UTC).date()


def _counter_value(data: Mapping[str, Any], name: str) -> int:
    value = data.get(name)
    if value is None:
        return 0
    if isinstance(value, str) and value.strip().isdecimal():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    return value


class StatisticsService:
    """Service for user statistics derived from the progress store."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        history_days: Optional[int] = None,
    ):
        """Initialize the service with a database session."""
        self.db = db
        self.progress_service = ProgressService(db)
        self.notification_service = notification_service
        self.history_days = history_days or settings.statistics.history_days

    def get_or_create_statistics(self, user_id: int) -> UserStatistics:
        """Get the statistics row of a user, adding an empty one if needed."""
        stats = self.db.query(UserStatistics).filter(UserStatistics.user_id == user_id).first()
        if stats is None:
            stats = UserStatistics(
                user_id=user_id,
                total_days=0,
                continuous_days=0,
                total_words_learned=0,
                total_words_mastered=0,
                last_learn_date=None,
            )
            self.db.add(stats)
            self.db.flush()
        return stats

    def _refresh_totals(self, stats: UserStatistics) -> None:
        stats.total_words_learned = self.progress_service.count_learned(stats.user_id)
        stats.total_words_mastered = self.progress_service.count_by_status(
            stats.user_id, ProgressStatus.MASTERED
        )

    def _advance_streak(self, stats: UserStatistics, learn_date: date) -> None:
        last = stats.last_learn_date
        if last == learn_date:
            return
        if last is not None and learn_date < last:
            logger.debug(
                f"Ignoring learning on {learn_date} for user {stats.user_id}: "
                f"already counted up to {last}"
            )
            return

        if last is not None and last == learn_date - timedelta(days=1):
            stats.continuous_days += 1
        else:
            if last is not None:
                monitoring.streak_resets.labels(trigger="learn").inc()
                logger.info(
                    f"Streak of user {stats.user_id} restarted after a gap since {last}"
                )
            stats.continuous_days = 1
        stats.total_days += 1
        stats.last_learn_date = learn_date

    def refresh_totals(self, user_id: int) -> UserStatistics:
        """Recount totals within the current transaction, without committing."""
        # Counting queries must see pending progress changes
        self.db.flush()
        stats = self.get_or_create_statistics(user_id)
        self._refresh_totals(stats)
        return stats

    def recompute(self, user_id: int) -> UserStatistics:
        """Recount learned and mastered words from the progress store."""
        stats = self.refresh_totals(user_id)
        self.db.commit()
        self.db.refresh(stats)
        return stats

    def record_learning(self, user_id: int, learn_date: Optional[date] = None) -> UserStatistics:
        """Recount totals and move the streak forward for a day of learning."""
        stats = self.get_or_create_statistics(user_id)
        self._refresh_totals(stats)
        self._advance_streak(stats, learn_date or _today())
        self.db.commit()
        self.db.refresh(stats)
        return stats

    def record_daily_learning(
        self,
        user_id: int,
        learn_date: Optional[date] = None,
        new_words_count: int = 0,
        review_words_count: int = 0,
    ) -> DailyLearningRecord:
        """Add to the day's learning record and count the day towards the streak."""
        if new_words_count < 0 or review_words_count < 0:
            raise ValueError("Word counts must not be negative")
        learn_date = learn_date or _today()

        record = (
            self.db.query(DailyLearningRecord)
            .filter(
                DailyLearningRecord.user_id == user_id,
                DailyLearningRecord.learn_date == learn_date,
            )
            .first()
        )
        if record:
            record.new_words_count += new_words_count
            record.review_words_count += review_words_count
        else:
            record = DailyLearningRecord(
                user_id=user_id,
                learn_date=learn_date,
                new_words_count=new_words_count,
                review_words_count=review_words_count,
            )
            self.db.add(record)

        stats = self.get_or_create_statistics(user_id)
        self._refresh_totals(stats)
        self._advance_streak(stats, learn_date)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update_statistics(self, user_id: int, data: Mapping[str, Any]) -> UserStatistics:
        """Merge statistics reported by a client.

        Counters take the larger of the stored and reported value and
        ``last_learn_date`` only moves forward.
        """
        counters = {name: _counter_value(data, name) for name in MERGED_COUNTERS}
        reported_date = to_date(data.get("last_learn_date"))

        stats = self.db.query(UserStatistics).filter(UserStatistics.user_id == user_id).first()
        if stats is None:
            stats = UserStatistics(user_id=user_id, last_learn_date=reported_date, **counters)
            self.db.add(stats)
            logger.info(f"Created statistics for user {user_id} from client data")
        else:
            for name, value in counters.items():
                setattr(stats, name, max(getattr(stats, name), value))
            if reported_date and (
                stats.last_learn_date is None or reported_date > stats.last_learn_date
            ):
                stats.last_learn_date = reported_date

        self.db.commit()
        self.db.refresh(stats)
        return stats

    def check_continuous_days(self, user_id: int, today: Optional[date] = None) -> UserStatistics:
        """Reset the streak if the user learned neither today nor yesterday.

        Unlike ``record_learning`` this never touches ``total_days``.
        """
        today = today or _today()
        stats = self.get_or_create_statistics(user_id)
        previous = stats.continuous_days

        last = stats.last_learn_date
        if last is not None and last not in (today, today - timedelta(days=1)):
            stats.continuous_days = 0
        self.db.commit()

        if previous and not stats.continuous_days:
            monitoring.streak_resets.labels(trigger="check").inc()
            logger.warning(f"Streak of {previous} days broken for user {user_id}, last learned {last}")
            if self.notification_service:
                self.notification_service.notify_streak_broken(user_id, previous)
        return stats

    def calculate_continuous_days(self, user_id: int, today: Optional[date] = None) -> int:
        """Count consecutive learning days from the daily record history."""
        today = today or _today()
        dates = [
            row.learn_date
            for row in self.db.query(DailyLearningRecord.learn_date)
            .filter(
                DailyLearningRecord.user_id == user_id,
                DailyLearningRecord.learn_date <= today,
            )
            .order_by(DailyLearningRecord.learn_date.desc())
            .all()
        ]
        if not dates or dates[0] not in (today, today - timedelta(days=1)):
            return 0

        continuous_days = 0
        expected = dates[0]
        for learn_date in dates:
            if learn_date != expected:
                break
            continuous_days += 1
            expected -= timedelta(days=1)
        return continuous_days

    def get_daily_records(self, user_id: int, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Get the daily learning records of the trailing history window, newest first."""
        today = today or _today()
        start_date = today - timedelta(days=self.history_days)
        records = (
            self.db.query(DailyLearningRecord)
            .filter(
                DailyLearningRecord.user_id == user_id,
                DailyLearningRecord.learn_date >= start_date,
                DailyLearningRecord.learn_date <= today,
            )
            .order_by(DailyLearningRecord.learn_date.desc())
            .all()
        )
        return [record.to_dict() for record in records]

    def get_statistics(self, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """Get user learning statistics with word totals counted from the progress store."""
        stats = self.get_or_create_statistics(user_id)
        self.db.commit()

        result = stats.to_dict()
        result["total_words_learned"] = self.progress_service.count_learned(user_id)
        result["total_words_mastered"] = self.progress_service.count_by_status(
            user_id, ProgressStatus.MASTERED
        )
        result["need_review"] = self.progress_service.count_by_status(
            user_id, ProgressStatus.NEED_REVIEW
        )
        result["daily_records"] = self.get_daily_records(user_id, today)
        return result
