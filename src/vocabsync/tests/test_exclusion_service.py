"""Tests for the exclusion service."""
from datetime import datetime, UTC

import pytest
from sqlalchemy.orm import Session

from vocabsync.exceptions import SyncValidationError
from vocabsync.models.models import UserWordExclusion
from vocabsync.services.exclusion_service import ExclusionService


@pytest.fixture
def exclusion_service(db: Session) -> ExclusionService:
    """Create an exclusion service instance."""
    return ExclusionService(db)


def test_exclude_and_restore_word(
    exclusion_service: ExclusionService, user_id: int, word_id: int, list_id: int
) -> None:
    """Test hiding a word and showing it again."""
    assert exclusion_service.is_excluded(user_id, word_id, list_id) is False

    assert exclusion_service.exclude_word(user_id, word_id, list_id) is True
    assert exclusion_service.is_excluded(user_id, word_id, list_id) is True

    # Excluding twice is reported but harmless
    assert exclusion_service.exclude_word(user_id, word_id, list_id) is False

    assert exclusion_service.restore_word(user_id, word_id, list_id) is True
    assert exclusion_service.is_excluded(user_id, word_id, list_id) is False
    assert exclusion_service.restore_word(user_id, word_id, list_id) is False


def test_batch_exclude_counts_new_markers(
    exclusion_service: ExclusionService, user_id: int, list_id: int
) -> None:
    exclusion_service.exclude_word(user_id, 1, list_id)

    count = exclusion_service.batch_exclude(user_id, [1, 2, 3, 3], list_id)

    assert count == 2
    assert sorted(exclusion_service.get_excluded_word_ids(user_id, list_id)) == [1, 2, 3]


def test_get_excluded_word_ids_is_scoped_to_list(
    exclusion_service: ExclusionService, user_id: int, list_id: int
) -> None:
    exclusion_service.batch_exclude(user_id, [1, 2], list_id)
    exclusion_service.batch_exclude(user_id, [3], list_id + 1)
    exclusion_service.batch_exclude(user_id + 1, [4], list_id)

    assert sorted(exclusion_service.get_excluded_word_ids(user_id, list_id)) == [1, 2]


def test_sync_exclusions_is_an_idempotent_union(
    exclusion_service: ExclusionService, db: Session, user_id: int, list_id: int
) -> None:
    """Test that only unknown markers are created."""
    exclusion_service.exclude_word(user_id, 1, list_id)
    batch = [
        {"word_id": 1, "vocabulary_list_id": list_id},
        {"word_id": 2, "vocabulary_list_id": list_id},
        {"word_id": 2, "vocabulary_list_id": list_id},
        {"word_id": 3, "vocabulary_list_id": list_id},
    ]

    report = exclusion_service.sync_exclusions(user_id, batch)
    assert report.synced_count == 2
    assert report.to_dict() == {"synced_count": 2}

    report = exclusion_service.sync_exclusions(user_id, batch)
    assert report.synced_count == 0
    assert db.query(UserWordExclusion).count() == 3


def test_sync_exclusions_keeps_client_timestamp(
    exclusion_service: ExclusionService, user_id: int, word_id: int, list_id: int
) -> None:
    excluded_at = datetime(2024, 2, 3, 4, 5, 6, tzinfo=UTC)

    exclusion_service.sync_exclusions(
        user_id,
        [{"word_id": word_id, "vocabulary_list_id": list_id,
          "excluded_at": int(excluded_at.timestamp())}],
    )

    exclusion = exclusion_service.get_exclusion(user_id, word_id, list_id)
    assert exclusion.excluded_at == excluded_at


def test_sync_exclusions_rejects_whole_batch(
    exclusion_service: ExclusionService, db: Session, user_id: int, list_id: int
) -> None:
    with pytest.raises(SyncValidationError):
        exclusion_service.sync_exclusions(
            user_id,
            [{"word_id": 1, "vocabulary_list_id": list_id}, {"vocabulary_list_id": list_id}],
        )
    assert db.query(UserWordExclusion).count() == 0

    with pytest.raises(SyncValidationError):
        exclusion_service.sync_exclusions(user_id, [])


def test_get_exclusion_data(
    exclusion_service: ExclusionService, user_id: int, list_id: int
) -> None:
    exclusion_service.batch_exclude(user_id, [5], list_id)
    exclusion_service.batch_exclude(user_id, [6], list_id + 1)

    everything = exclusion_service.get_exclusion_data(user_id)
    one_list = exclusion_service.get_exclusion_data(user_id, list_id)

    assert [item["word_id"] for item in everything] == [5, 6]
    assert one_list == [
        {"word_id": 5, "vocabulary_list_id": list_id, "excluded_at": one_list[0]["excluded_at"]}
    ]
    assert datetime.fromisoformat(one_list[0]["excluded_at"]).tzinfo is not None


def test_sync_exclusions_rolls_back_on_unexpected_error(
    exclusion_service: ExclusionService, db: Session, user_id: int, list_id: int, monkeypatch
) -> None:
    """Test that markers flushed before a failure are not left in the session."""
    add_exclusion = exclusion_service._add_exclusion
    calls = []

    def failing_add(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise RuntimeError("unexpected failure")
        return add_exclusion(*args, **kwargs)

    monkeypatch.setattr(exclusion_service, "_add_exclusion", failing_add)

    with pytest.raises(RuntimeError):
        exclusion_service.sync_exclusions(
            user_id,
            [{"word_id": word, "vocabulary_list_id": list_id} for word in (1, 2, 3)],
        )

    assert db.query(UserWordExclusion).count() == 0


if __name__ == "__main__":
    pytest.main([__file__])
