"""Status state machine tests"""

from datetime import datetime

import pytest

from src.core.request import (
    ALLOWED_TRANSITIONS,
    InvalidTransition,
    Request,
    RequestStatus,
    UnknownStatusError,
    can_transition,
    parse_status,
    transition,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


def _request(status=RequestStatus.OPEN, **kwargs) -> Request:
    base = dict(
        id=1,
        requester_id="user-1",
        character_name="Thalia",
        profession="tailoring",
        gear_slot="cloak",
        item_id="item-7",
        item_label="Silk Cloak",
        status=status,
        quantity_requested=3,
    )
    if status in (RequestStatus.CLAIMED, RequestStatus.IN_PROGRESS):
        base.update(claimed_by="crafter-1", claimed_by_display_name="Bram", claimed_at=NOW)
    base.update(kwargs)
    return Request(**base)


ILLEGAL_EDGES = [
    (src, dst)
    for src in RequestStatus
    for dst in RequestStatus
    if dst not in ALLOWED_TRANSITIONS[src]
]


class TestTable:
    def test_forward_path(self):
        assert can_transition("open", "claimed")
        assert can_transition("claimed", "in_progress")
        assert can_transition("in_progress", "complete")

    def test_deny_from_every_active_status(self):
        for status in ("open", "claimed", "in_progress"):
            assert can_transition(status, "denied")

    def test_terminal_statuses_accept_nothing(self):
        for status in RequestStatus:
            assert not can_transition(RequestStatus.COMPLETE, status)
            assert not can_transition(RequestStatus.DENIED, status)

    def test_skip_ahead_rejected(self):
        assert not can_transition("open", "in_progress")
        assert not can_transition("open", "complete")
        assert not can_transition("claimed", "complete")

    def test_unknown_values_never_transition(self):
        assert not can_transition("open", "cancelled")
        assert not can_transition("cancelled", "open")


class TestParseStatus:
    def test_accepts_enum_and_string(self):
        assert parse_status("in_progress") is RequestStatus.IN_PROGRESS
        assert parse_status(RequestStatus.DENIED) is RequestStatus.DENIED

    @pytest.mark.parametrize("value", ["cancelled", "CLAIMED", "", None, 3])
    def test_rejects_values_outside_lifecycle(self, value):
        with pytest.raises(UnknownStatusError):
            parse_status(value)


class TestTransition:
    def test_claim_sets_claimant(self):
        result = transition(
            _request(), "claimed", at=NOW, claimed_by="crafter-9", claimed_by_display_name="Ivo"
        )
        assert result.ok
        assert result.value.status == RequestStatus.CLAIMED
        assert result.value.claimed_by == "crafter-9"
        assert result.value.claimed_by_display_name == "Ivo"
        assert result.value.claimed_at == NOW

    def test_claim_without_claimant_rejected(self):
        result = transition(_request(), RequestStatus.CLAIMED, at=NOW)
        assert result.error == InvalidTransition("open", "claimed")

    def test_start_work_keeps_claim(self):
        result = transition(_request(RequestStatus.CLAIMED), "in_progress", at=NOW)
        assert result.value.status == RequestStatus.IN_PROGRESS
        assert result.value.claimed_by == "crafter-1"

    def test_complete_clears_claim_and_fills_quantity(self):
        result = transition(_request(RequestStatus.IN_PROGRESS), "complete", at=NOW)
        after = result.value
        assert after.status == RequestStatus.COMPLETE
        assert after.quantity_completed == 3
        assert after.claimed_by is None
        assert after.claimed_by_display_name is None
        assert after.claimed_at is None

    def test_deny_records_reason_and_clears_claim(self):
        result = transition(
            _request(RequestStatus.CLAIMED), "denied", at=NOW, reason="no longer needed"
        )
        assert result.value.deny_reason == "no longer needed"
        assert result.value.claimed_by is None

    def test_input_snapshot_untouched(self):
        before = _request(RequestStatus.CLAIMED)
        transition(before, "denied", at=NOW, reason="x")
        assert before.status == RequestStatus.CLAIMED
        assert before.claimed_by == "crafter-1"

    @pytest.mark.parametrize("src,dst", ILLEGAL_EDGES)
    def test_every_illegal_edge_rejected(self, src, dst):
        before = _request(src)
        result = transition(before, dst, at=NOW, claimed_by="crafter-2")
        assert not result.ok
        assert result.error == InvalidTransition(src.value, dst.value)

    def test_retired_cancelled_status_fails_closed(self):
        result = transition(_request(RequestStatus.CLAIMED), "cancelled", at=NOW)
        assert result.error == InvalidTransition("claimed", "cancelled")
        assert result.value is None
