"""Database models for learning progress, exclusions and statistics."""
from datetime import datetime, UTC
from typing import Any, Dict

from sqlalchemy import Column, Date, Integer, String, UniqueConstraint

from vocabsync.models.base import Base, TimestampMixin
from vocabsync.models.sync_models import ProgressSnapshot, ProgressStatus, isoformat
from vocabsync.models.types import UTCDateTime


class UserWordProgress(Base, TimestampMixin):
    """Learning progress of one user for one word within one vocabulary list."""

    __tablename__ = "user_word_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", "vocabulary_list_id", name="uq_progress_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    word_id = Column(Integer, nullable=False)
    vocabulary_list_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ProgressStatus.NOT_LEARNED.value)
    learned_at = Column(UTCDateTime(), nullable=True)  # set once, never cleared
    last_review_at = Column(UTCDateTime(), nullable=True)
    next_review_at = Column(UTCDateTime(), nullable=True, index=True)
    review_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    memory_level = Column(Integer, nullable=False, default=0)  # 0-5

    def to_snapshot(self) -> ProgressSnapshot:
        """Return the current value of the record."""
        return ProgressSnapshot(
            status=self.status,
            memory_level=self.memory_level,
            review_count=self.review_count,
            error_count=self.error_count,
            learned_at=self.learned_at,
            last_review_at=self.last_review_at,
            next_review_at=self.next_review_at,
        )

    def apply_snapshot(self, snapshot: ProgressSnapshot) -> None:
        """Replace every progress field with the snapshot's values."""
        for name, value in snapshot.as_dict().items():
            setattr(self, name, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_id": self.word_id,
            "vocabulary_list_id": self.vocabulary_list_id,
            **self.to_snapshot().to_dict(),
        }


class UserWordExclusion(Base):
    """Marker hiding a word from a vocabulary list for one user."""

    __tablename__ = "user_word_exclusions"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", "vocabulary_list_id", name="uq_exclusion_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    word_id = Column(Integer, nullable=False)
    vocabulary_list_id = Column(Integer, nullable=False, index=True)
    excluded_at = Column(UTCDateTime(), nullable=False, default=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_id": self.word_id,
            "vocabulary_list_id": self.vocabulary_list_id,
            "excluded_at": isoformat(self.excluded_at),
        }


class UserStatistics(Base, TimestampMixin):
    """Cached learning totals and continuous-day streak of a user."""

    __tablename__ = "user_statistics"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, unique=True, nullable=False)
    total_days = Column(Integer, nullable=False, default=0)
    continuous_days = Column(Integer, nullable=False, default=0)
    total_words_learned = Column(Integer, nullable=False, default=0)
    total_words_mastered = Column(Integer, nullable=False, default=0)
    last_learn_date = Column(Date, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_days": self.total_days,
            "continuous_days": self.continuous_days,
            "total_words_learned": self.total_words_learned,
            "total_words_mastered": self.total_words_mastered,
            "last_learn_date": self.last_learn_date.isoformat() if self.last_learn_date else None,
        }


class DailyLearningRecord(Base, TimestampMixin):
    """Words learned and reviewed by a user on one calendar day."""

    __tablename__ = "daily_learning_records"
    __table_args__ = (
        UniqueConstraint("user_id", "learn_date", name="uq_daily_record_day"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    learn_date = Column(Date, nullable=False)
    new_words_count = Column(Integer, nullable=False, default=0)
    review_words_count = Column(Integer, nullable=False, default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.learn_date.isoformat(),
            "new_words_count": self.new_words_count,
            "review_words_count": self.review_words_count,
        }
