"""Tests for the progress service."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from vocabsync.models.models import UserWordProgress
from vocabsync.services.progress_service import ProgressService


@pytest.fixture
def progress_service(db: Session) -> ProgressService:
    """Create a progress service instance."""
    return ProgressService(db)


def test_get_or_create_progress(
    progress_service: ProgressService, db: Session, user_id: int, word_id: int, list_id: int
) -> None:
    """Test lazy creation of a progress record."""
    assert progress_service.get_progress(user_id, word_id, list_id) is None

    progress = progress_service.get_or_create_progress(user_id, word_id, list_id)
    again = progress_service.get_or_create_progress(user_id, word_id, list_id)

    assert progress is again
    assert progress.status == "not_learned"
    assert progress.memory_level == 0
    assert db.query(UserWordProgress).count() == 1


def test_mark_known_and_unknown(
    progress_service: ProgressService, user_id: int, word_id: int, list_id: int, now: datetime
) -> None:
    """Test that answers go through the review scheduler and are stored."""
    progress = progress_service.mark_known(user_id, word_id, list_id, now)
    assert progress.memory_level == 1
    assert progress.review_count == 1
    assert progress.learned_at == now

    progress_service.mark_known(user_id, word_id, list_id, now + timedelta(days=1))
    progress = progress_service.mark_unknown(user_id, word_id, list_id, now + timedelta(days=3))

    assert progress.memory_level == 1
    assert progress.status == "need_review"
    assert progress.error_count == 1
    assert progress.review_count == 2
    assert progress.learned_at == now
    assert progress.next_review_at == now + timedelta(days=4)


def test_get_due_reviews(
    progress_service: ProgressService, user_id: int, list_id: int, now: datetime
) -> None:
    progress_service.mark_known(user_id, 1, list_id, now - timedelta(days=3))
    progress_service.mark_unknown(user_id, 2, list_id, now - timedelta(days=2))
    progress_service.mark_known(user_id, 3, list_id, now)
    for day in range(5):
        progress_service.mark_known(user_id, 4, list_id, now - timedelta(days=40 - day))

    due = progress_service.get_due_reviews(user_id, list_id, now)

    # Word 4 is mastered and word 3 is not due yet
    assert [p.word_id for p in due] == [1, 2]


def test_get_wrong_words(
    progress_service: ProgressService, user_id: int, list_id: int, now: datetime
) -> None:
    progress_service.mark_unknown(user_id, 1, list_id, now)
    for _ in range(3):
        progress_service.mark_unknown(user_id, 2, list_id, now)
    progress_service.mark_known(user_id, 3, list_id, now)

    wrong = progress_service.get_wrong_words(user_id, list_id)

    assert [(p.word_id, p.error_count) for p in wrong] == [(2, 3), (1, 1)]


def test_get_list_statistics(
    progress_service: ProgressService, user_id: int, list_id: int, now: datetime
) -> None:
    for _ in range(5):
        progress_service.mark_known(user_id, 1, list_id, now)
    progress_service.mark_known(user_id, 2, list_id, now)
    progress_service.mark_unknown(user_id, 3, list_id, now)

    stats = progress_service.get_list_statistics(user_id, list_id, total_words=8)

    assert stats == {
        "total": 8,
        "mastered": 1,
        "need_review": 2,
        "not_learned": 5,
        "progress": 12.5,
    }
    assert progress_service.get_list_statistics(user_id, list_id, 0)["progress"] == 0


def test_get_progress_data(
    progress_service: ProgressService, user_id: int, list_id: int, now: datetime
) -> None:
    progress_service.mark_known(user_id, 1, list_id, now - timedelta(days=5))
    progress_service.mark_known(user_id, 2, list_id, now)
    progress_service.mark_known(user_id, 3, list_id + 1, now)

    assert len(progress_service.get_progress_data(user_id)) == 3
    assert [p["word_id"] for p in progress_service.get_progress_data(user_id, list_id)] == [1, 2]

    recent = progress_service.get_progress_data(user_id, since=now - timedelta(days=1))
    assert [p["word_id"] for p in recent] == [2, 3]
    assert recent[0]["last_review_at"] == now.isoformat()


if __name__ == "__main__":
    pytest.main([__file__])
