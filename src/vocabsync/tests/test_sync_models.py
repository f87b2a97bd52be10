"""Tests for sync payload parsing."""
from datetime import date, datetime, timedelta, timezone, UTC

import pytest

from vocabsync.exceptions import SyncValidationError
from vocabsync.models.sync_models import (
    MISSING,
    ClientProgress,
    ConflictReport,
    ExclusionEntry,
    ProgressSnapshot,
    Resolution,
    SyncReport,
    to_date,
    to_utc_datetime,
)


def test_from_payload_tracks_presence() -> None:
    """Test that omitted fields stay distinguishable from sent ones."""
    item = ClientProgress.from_payload(0, {"word_id": 3, "vocabulary_list_id": 7, "memory_level": 2})

    assert item.key == (3, 7)
    assert item.memory_level == 2
    assert item.status is MISSING
    assert item.is_present("memory_level")
    assert not item.is_present("review_count")
    assert item.present_fields() == {"memory_level": 2}


def test_from_payload_parses_all_fields() -> None:
    payload = {
        "word_id": "12",
        "vocabulary_list_id": 4,
        "status": "mastered",
        "memory_level": 5,
        "review_count": 5,
        "error_count": 1,
        "learned_at": 1700000000,
        "last_review_at": "2024-05-01T12:00:00Z",
        "next_review_at": "2024-05-16T12:00:00+02:00",
    }

    item = ClientProgress.from_payload(0, payload)

    assert item.word_id == 12
    assert item.status == "mastered"
    assert item.learned_at == datetime.fromtimestamp(1700000000, UTC)
    assert item.last_review_at == datetime(2024, 5, 1, 12, tzinfo=UTC)
    assert item.next_review_at == datetime(2024, 5, 16, 10, tzinfo=UTC)


@pytest.mark.parametrize(
    "payload",
    [
        {"vocabulary_list_id": 1},
        {"word_id": 1},
        {"word_id": 0, "vocabulary_list_id": 1},
        {"word_id": "abc", "vocabulary_list_id": 1},
        {"word_id": True, "vocabulary_list_id": 1},
        {"word_id": 1, "vocabulary_list_id": 1, "status": "forgotten"},
        {"word_id": 1, "vocabulary_list_id": 1, "memory_level": 6},
        {"word_id": 1, "vocabulary_list_id": 1, "memory_level": -1},
        {"word_id": 1, "vocabulary_list_id": 1, "review_count": 1.5},
        {"word_id": 1, "vocabulary_list_id": 1, "last_review_at": "yesterday"},
        "not an object",
    ],
)
def test_from_payload_rejects_malformed_items(payload) -> None:
    with pytest.raises(SyncValidationError) as exc_info:
        ClientProgress.from_payload(4, payload)
    assert exc_info.value.index == 4
    assert str(exc_info.value).startswith("item 4:")


def test_null_values_for_plain_fields_count_as_omitted() -> None:
    item = ClientProgress.from_payload(
        0, {"word_id": 1, "vocabulary_list_id": 1, "status": None, "review_count": None}
    )
    assert item.present_fields() == {}


def test_null_timestamp_clears_but_learned_at_is_kept() -> None:
    item = ClientProgress.from_payload(
        0,
        {"word_id": 1, "vocabulary_list_id": 1, "learned_at": None, "next_review_at": None},
    )
    assert item.present_fields() == {"next_review_at": None}


def test_overlay_applies_sent_fields_over_base(now: datetime) -> None:
    base = ProgressSnapshot(status="need_review", memory_level=2, review_count=3, learned_at=now)
    item = ClientProgress(word_id=1, vocabulary_list_id=1, memory_level=4, next_review_at=None)

    result = item.overlay(base)

    assert result.memory_level == 4
    assert result.review_count == 3
    assert result.learned_at == now
    assert result.next_review_at is None


def test_to_utc_datetime_variants() -> None:
    expected = datetime(2024, 1, 1, tzinfo=UTC)
    assert to_utc_datetime(None) is None
    assert to_utc_datetime(int(expected.timestamp())) == expected
    assert to_utc_datetime(str(int(expected.timestamp()))) == expected
    assert to_utc_datetime("2024-01-01T00:00:00") == expected
    assert to_utc_datetime(datetime(2024, 1, 1)) == expected
    assert to_utc_datetime(datetime(2024, 1, 1, 2, tzinfo=timezone(timedelta(hours=2)))) == expected
    with pytest.raises(ValueError):
        to_utc_datetime(True)


def test_to_date_variants() -> None:
    assert to_date("2024-03-02") == date(2024, 3, 2)
    assert to_date(datetime(2024, 3, 2, 23, 59)) == date(2024, 3, 2)
    assert to_date(None) is None
    with pytest.raises(ValueError):
        to_date(20240302)


def test_sync_report_to_dict() -> None:
    report = SyncReport(
        synced_count=2,
        conflicts=[ConflictReport(5, 6, Resolution.SERVER_HIGHER_REVIEW_COUNT)],
    )
    assert report.to_dict() == {
        "synced_count": 2,
        "conflicts": [
            {"word_id": 5, "vocabulary_list_id": 6, "resolution": "server_higher_review_count"}
        ],
    }


def test_exclusion_entry_from_payload() -> None:
    entry = ExclusionEntry.from_payload(0, {"word_id": 2, "vocabulary_list_id": 3})
    assert entry.key == (2, 3)
    assert entry.excluded_at is None

    with pytest.raises(SyncValidationError):
        ExclusionEntry.from_payload(1, {"word_id": 2})


if __name__ == "__main__":
    pytest.main([__file__])
