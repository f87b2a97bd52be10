"""Plain data structures exchanged with sync clients."""
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from vocabsync.config import settings
from vocabsync.exceptions import SyncValidationError


class _Missing:
    """Marker for a field the client did not send."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class ProgressStatus(str, Enum):
    """Learning status of a word."""
    NOT_LEARNED = "not_learned"
    NEED_REVIEW = "need_review"
    MASTERED = "mastered"


class Outcome(str, Enum):
    """Answer given for a word during a review."""
    KNOWN = "known"
    UNKNOWN = "unknown"


class Resolution(str, Enum):
    """How a sync conflict was decided."""
    CLIENT_HIGHER_MEMORY_LEVEL = "client_higher_memory_level"
    SERVER_HIGHER_MEMORY_LEVEL = "server_higher_memory_level"
    CLIENT_HIGHER_REVIEW_COUNT = "client_higher_review_count"
    SERVER_HIGHER_REVIEW_COUNT = "server_higher_review_count"
    CLIENT_MORE_RECENT = "client_more_recent"


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """Convert epoch seconds, an ISO-8601 string or a datetime to aware UTC.

    Naive values are taken to be UTC already.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, UTC)
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdecimal():
            return datetime.fromtimestamp(int(text), UTC)
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_date(value: Any) -> Optional[date]:
    """Convert a ``YYYY-MM-DD`` string, date or datetime to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Invalid date: {value!r}")


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Complete value of a progress record, detached from the database."""
    status: str = ProgressStatus.NOT_LEARNED.value
    memory_level: int = 0
    review_count: int = 0
    error_count: int = 0
    learned_at: Optional[datetime] = None
    last_review_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form with ISO-8601 timestamps."""
        return {
            "status": self.status,
            "memory_level": self.memory_level,
            "review_count": self.review_count,
            "error_count": self.error_count,
            "learned_at": isoformat(self.learned_at),
            "last_review_at": isoformat(self.last_review_at),
            "next_review_at": isoformat(self.next_review_at),
        }


PROGRESS_FIELDS = tuple(f.name for f in fields(ProgressSnapshot))
TIMESTAMP_FIELDS = ("learned_at", "last_review_at", "next_review_at")
COUNT_FIELDS = ("review_count", "error_count")


def _parse_id(payload: Mapping[str, Any], key: str, index: int) -> int:
    value = payload.get(key)
    if isinstance(value, str) and value.strip().isdecimal():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise SyncValidationError(f"{key} is required and must be a positive integer", index)
    return value


def _parse_count(name: str, value: Any, index: int) -> int:
    if isinstance(value, str) and value.strip().isdecimal():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SyncValidationError(f"{name} must be a non-negative integer", index)
    return value


@dataclass(frozen=True)
class ClientProgress:
    """One element of a progress sync batch.

    Optional fields hold ``MISSING`` when the client omitted them, so an
    omitted value can be told apart from an explicit one.
    """
    word_id: int
    vocabulary_list_id: int
    status: Any = MISSING
    memory_level: Any = MISSING
    review_count: Any = MISSING
    error_count: Any = MISSING
    learned_at: Any = MISSING
    last_review_at: Any = MISSING
    next_review_at: Any = MISSING

    @property
    def key(self) -> tuple[int, int]:
        return self.word_id, self.vocabulary_list_id

    def is_present(self, name: str) -> bool:
        return getattr(self, name) is not MISSING

    def present_fields(self) -> Dict[str, Any]:
        """Progress fields the client actually sent."""
        return {name: getattr(self, name) for name in PROGRESS_FIELDS if self.is_present(name)}

    def overlay(self, base: ProgressSnapshot) -> ProgressSnapshot:
        """The client's full snapshot: sent fields over ``base``."""
        return replace(base, **self.present_fields())

    @classmethod
    def from_payload(cls, index: int, payload: Any) -> "ClientProgress":
        """Validate one raw batch element."""
        if not isinstance(payload, Mapping):
            raise SyncValidationError("progress item must be an object", index)

        values: Dict[str, Any] = {
            "word_id": _parse_id(payload, "word_id", index),
            "vocabulary_list_id": _parse_id(payload, "vocabulary_list_id", index),
        }

        status = payload.get("status")
        if status is not None:
            try:
                values["status"] = ProgressStatus(status).value
            except ValueError:
                raise SyncValidationError(f"unknown status {status!r}", index) from None

        level = payload.get("memory_level")
        if level is not None:
            level = _parse_count("memory_level", level, index)
            if level > settings.learning.max_memory_level:
                raise SyncValidationError(
                    f"memory_level must be between 0 and {settings.learning.max_memory_level}",
                    index,
                )
            values["memory_level"] = level

        for name in COUNT_FIELDS:
            if payload.get(name) is not None:
                values[name] = _parse_count(name, payload[name], index)

        for name in TIMESTAMP_FIELDS:
            if name not in payload:
                continue
            # learned_at is never cleared by a sync
            if name == "learned_at" and payload[name] is None:
                continue
            try:
                values[name] = to_utc_datetime(payload[name])
            except (ValueError, OverflowError, OSError):
                raise SyncValidationError(f"{name} is not a valid timestamp", index) from None

        return cls(**values)


@dataclass(frozen=True)
class ResolutionResult:
    """Decision taken for one key whose record exists on both sides."""
    updated: bool
    conflict: bool
    resolution: Optional[Resolution]
    snapshot: ProgressSnapshot


@dataclass
class ConflictReport:
    """A key whose server and client snapshots had to be adjudicated."""
    word_id: int
    vocabulary_list_id: int
    resolution: Resolution

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_id": self.word_id,
            "vocabulary_list_id": self.vocabulary_list_id,
            "resolution": self.resolution.value,
        }


@dataclass
class SyncReport:
    """Outcome of a progress sync batch."""
    synced_count: int = 0
    conflicts: List[ConflictReport] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synced_count": self.synced_count,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass(frozen=True)
class ExclusionEntry:
    """One element of an exclusion sync batch."""
    word_id: int
    vocabulary_list_id: int
    excluded_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[int, int]:
        return self.word_id, self.vocabulary_list_id

    @classmethod
    def from_payload(cls, index: int, payload: Any) -> "ExclusionEntry":
        if not isinstance(payload, Mapping):
            raise SyncValidationError("exclusion item must be an object", index)
        try:
            excluded_at = to_utc_datetime(payload.get("excluded_at"))
        except (ValueError, OverflowError, OSError):
            raise SyncValidationError("excluded_at is not a valid timestamp", index) from None
        return cls(
            word_id=_parse_id(payload, "word_id", index),
            vocabulary_list_id=_parse_id(payload, "vocabulary_list_id", index),
            excluded_at=excluded_at,
        )


@dataclass
class ExclusionSyncReport:
    """Outcome of an exclusion sync batch."""
    synced_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"synced_count": self.synced_count}
