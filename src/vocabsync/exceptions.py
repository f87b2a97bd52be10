"""Exceptions raised by the sync services."""
from typing import Optional


class VocabSyncError(Exception):
    """Base class for sync backend errors."""


class SyncValidationError(VocabSyncError, ValueError):
    """A sync batch element is malformed; the whole batch is rejected."""

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        if index is not None:
            message = f"item {index}: {message}"
        super().__init__(message)


class SyncError(VocabSyncError, RuntimeError):
    """A sync batch failed while writing and was rolled back."""
