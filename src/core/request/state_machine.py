"""Request status state machine

open -> claimed -> in_progress -> complete, denied from any non-terminal
status. complete and denied accept nothing. Values outside RequestStatus
(including the retired "cancelled") are rejected, never mapped.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional

from .enums import CLAIM_HOLDING_STATUSES, RequestStatus
from .errors import InvalidTransition, Result, UnknownStatusError
from .models import Request

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.OPEN: frozenset({RequestStatus.CLAIMED, RequestStatus.DENIED}),
    RequestStatus.CLAIMED: frozenset(
        {RequestStatus.IN_PROGRESS, RequestStatus.DENIED}
    ),
    RequestStatus.IN_PROGRESS: frozenset(
        {RequestStatus.COMPLETE, RequestStatus.DENIED}
    ),
    RequestStatus.COMPLETE: frozenset(),
    RequestStatus.DENIED: frozenset(),
}


def parse_status(value: Any) -> RequestStatus:
    """Strict conversion. Raises UnknownStatusError."""
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(value)
    except ValueError:
        raise UnknownStatusError(value) from None


def parse_statuses(values: Iterable[Any]) -> list[RequestStatus]:
    return [parse_status(v) for v in values]


def can_transition(from_status: Any, to_status: Any) -> bool:
    try:
        src = parse_status(from_status)
        dst = parse_status(to_status)
    except UnknownStatusError:
        return False
    return dst in ALLOWED_TRANSITIONS[src]


def transition(
    request: Request,
    new_status: Any,
    *,
    at: datetime,
    reason: Optional[str] = None,
    claimed_by: Optional[str] = None,
    claimed_by_display_name: Optional[str] = None,
) -> Result[Request]:
    """Apply one edge of the table to a snapshot.

    Returns a new Request; the input is never touched. Leaving the
    claim-holding statuses clears the claim fields. Entering ``claimed``
    needs a claimant.
    """
    raw_target = new_status.value if isinstance(new_status, RequestStatus) else str(new_status)
    try:
        target = parse_status(new_status)
    except UnknownStatusError:
        logger.warning(
            "Rejected unknown status %r for request %s", new_status, request.id
        )
        return Result.failure(InvalidTransition(request.status.value, raw_target))

    if target not in ALLOWED_TRANSITIONS[request.status]:
        return Result.failure(InvalidTransition(request.status.value, target.value))

    changes: dict[str, Any] = {"status": target, "updated_at": at}

    if target == RequestStatus.CLAIMED:
        if not claimed_by:
            return Result.failure(InvalidTransition(request.status.value, target.value))
        changes.update(
            claimed_by=claimed_by,
            claimed_by_display_name=claimed_by_display_name or claimed_by,
            claimed_at=at,
        )
    elif target not in CLAIM_HOLDING_STATUSES:
        changes.update(claimed_by=None, claimed_by_display_name=None, claimed_at=None)

    if target == RequestStatus.DENIED:
        changes["deny_reason"] = reason
    if target == RequestStatus.COMPLETE:
        changes["quantity_completed"] = request.quantity_requested

    return Result.success(replace(request, **changes))
