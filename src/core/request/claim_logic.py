"""Claim arbitration decisions

The store performs the conditional write; these helpers decide what the
write sets and, when it matched no row, why.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .enums import CLAIM_HOLDING_STATUSES, RequestStatus
from .errors import AlreadyClaimed, InvalidTransition, NotClaimed, NotFound, RequestError

CLAIMABLE_STATUS = RequestStatus.OPEN
RELEASABLE_STATUSES = CLAIM_HOLDING_STATUSES


def claim_values(crafter_id: str, display_name: Optional[str], at: datetime) -> dict[str, Any]:
    return {
        "status": RequestStatus.CLAIMED.value,
        "claimed_by": crafter_id,
        "claimed_by_display_name": display_name or crafter_id,
        "claimed_at": at,
        "updated_at": at,
    }


def unclaimed_values(status: RequestStatus, at: datetime) -> dict[str, Any]:
    """Values for any move out of the claim-holding statuses."""
    return {
        "status": status.value,
        "claimed_by": None,
        "claimed_by_display_name": None,
        "claimed_at": None,
        "updated_at": at,
    }


def classify_failed_claim(
    request_id: int,
    current_status: Optional[RequestStatus],
    current_claimant: Optional[str],
) -> RequestError:
    """Why a conditional claim matched nothing. None status means no row."""
    if current_status is None:
        return NotFound("request", request_id)
    if current_status in CLAIM_HOLDING_STATUSES:
        return AlreadyClaimed(request_id, current_claimant)
    return InvalidTransition(current_status.value, RequestStatus.CLAIMED.value)


def classify_failed_release(
    request_id: int, current_status: Optional[RequestStatus]
) -> RequestError:
    if current_status is None:
        return NotFound("request", request_id)
    return NotClaimed(request_id, current_status.value)
