"""Decide between the server and a client copy of the same progress record.

Progress is treated as something that only improves: the side with the
higher memory level wins, then the side with more reviews, then the side
that reviewed most recently. The winner's snapshot replaces the loser's as
a whole; fields are never merged one by one.
"""
import logging
from datetime import datetime
from typing import Optional

from vocabsync.models.sync_models import (
    ClientProgress,
    ProgressSnapshot,
    Resolution,
    ResolutionResult,
)

logger = logging.getLogger(__name__)


def _is_more_recent(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    if candidate is None:
        return False
    return current is None or candidate > current


def resolve(server: ProgressSnapshot, client: ClientProgress) -> ResolutionResult:
    """Resolve a client record against the stored one.

    Fields the client omitted take the server's value before comparing, so an
    element carrying only a newer ``last_review_at`` is judged on recency.
    """
    candidate = client.overlay(server)

    if candidate.memory_level > server.memory_level:
        return ResolutionResult(True, True, Resolution.CLIENT_HIGHER_MEMORY_LEVEL, candidate)
    if candidate.memory_level < server.memory_level:
        return ResolutionResult(False, True, Resolution.SERVER_HIGHER_MEMORY_LEVEL, server)

    if candidate.review_count > server.review_count:
        return ResolutionResult(True, True, Resolution.CLIENT_HIGHER_REVIEW_COUNT, candidate)
    if candidate.review_count < server.review_count:
        return ResolutionResult(False, True, Resolution.SERVER_HIGHER_REVIEW_COUNT, server)

    if _is_more_recent(candidate.last_review_at, server.last_review_at):
        return ResolutionResult(True, True, Resolution.CLIENT_MORE_RECENT, candidate)

    logger.debug("Client record for %s matches server, keeping server copy", client.key)
    return ResolutionResult(False, False, None, server)
