"""Double-submit suppression

Absorbs rapid repeated input only. The same item requested again after the
window is a new, legitimate request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class SubmissionKey:
    requester_id: str
    character_name: str
    profession: str
    gear_slot: str
    item_id: str


def window_start(now: datetime, window_ms: int) -> datetime:
    """Submissions created strictly after this instant are duplicates."""
    return now - timedelta(milliseconds=window_ms)
