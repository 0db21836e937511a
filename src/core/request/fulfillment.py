"""Partial quantity fulfillment

Completion is only accepted while a request is in_progress. A null amount
finishes the request outright; a positive amount adds to the running total,
clamped at the requested quantity. The total never goes down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .enums import RequestStatus
from .errors import ExceedsRequested, InvalidQuantity, InvalidTransition, RequestError
from .models import Request

COMPLETABLE_STATUS = RequestStatus.IN_PROGRESS


@dataclass(frozen=True)
class CompletionPlan:
    amount: Optional[int]  # None = full completion
    previous_total: int
    new_total: int
    completes: bool

    @property
    def is_full(self) -> bool:
        return self.amount is None

    @property
    def added(self) -> int:
        """Units this report actually counts after clamping."""
        return self.new_total - self.previous_total


def remaining(request: Request) -> int:
    return max(0, request.quantity_requested - request.quantity_completed)


def validate_amount(amount: Any) -> Optional[RequestError]:
    if amount is None:
        return None
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        return InvalidQuantity("amount", amount)
    return None


def clamp_total(quantity_requested: int, quantity_completed: int, amount: int) -> int:
    return min(quantity_requested, quantity_completed + amount)


def plan_completion(
    request: Request, amount: Optional[int]
) -> tuple[Optional[CompletionPlan], Optional[RequestError]]:
    """Decide the effect of one completion report against a snapshot."""
    error = validate_amount(amount)
    if error is not None:
        return None, error

    if request.status != COMPLETABLE_STATUS:
        return None, InvalidTransition(request.status.value, RequestStatus.COMPLETE.value)

    if request.quantity_completed > request.quantity_requested:
        return None, ExceedsRequested(
            request.quantity_requested, request.quantity_completed
        )

    if amount is None:
        return (
            CompletionPlan(
                None, request.quantity_completed, request.quantity_requested, True
            ),
            None,
        )

    new_total = clamp_total(
        request.quantity_requested, request.quantity_completed, amount
    )
    return (
        CompletionPlan(
            amount,
            request.quantity_completed,
            new_total,
            new_total >= request.quantity_requested,
        ),
        None,
    )
