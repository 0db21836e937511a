"""Claim arbitration decision tests"""

from datetime import datetime

from src.core.request.claim_logic import (
    claim_values,
    classify_failed_claim,
    classify_failed_release,
    unclaimed_values,
)
from src.core.request.enums import RequestStatus
from src.core.request.errors import AlreadyClaimed, InvalidTransition, NotClaimed, NotFound

NOW = datetime(2024, 5, 1, 12, 0, 0)


class TestValues:
    def test_claim_values(self):
        values = claim_values("crafter-1", "Bram", NOW)
        assert values == {
            "status": "claimed",
            "claimed_by": "crafter-1",
            "claimed_by_display_name": "Bram",
            "claimed_at": NOW,
            "updated_at": NOW,
        }

    def test_display_name_falls_back_to_id(self):
        assert claim_values("crafter-1", None, NOW)["claimed_by_display_name"] == "crafter-1"

    def test_unclaimed_values_clear_every_claim_field(self):
        values = unclaimed_values(RequestStatus.OPEN, NOW)
        assert values["status"] == "open"
        assert values["claimed_by"] is None
        assert values["claimed_by_display_name"] is None
        assert values["claimed_at"] is None


class TestClassifyFailedClaim:
    def test_missing_row(self):
        assert classify_failed_claim(3, None, None) == NotFound("request", 3)

    def test_held_by_someone(self):
        assert classify_failed_claim(3, RequestStatus.CLAIMED, "crafter-2") == AlreadyClaimed(
            3, "crafter-2"
        )
        assert classify_failed_claim(3, RequestStatus.IN_PROGRESS, "crafter-2") == AlreadyClaimed(
            3, "crafter-2"
        )

    def test_terminal(self):
        assert classify_failed_claim(3, RequestStatus.COMPLETE, None) == InvalidTransition(
            "complete", "claimed"
        )
        assert classify_failed_claim(3, RequestStatus.DENIED, None) == InvalidTransition(
            "denied", "claimed"
        )


class TestClassifyFailedRelease:
    def test_missing_row(self):
        assert classify_failed_release(4, None) == NotFound("request", 4)

    def test_not_claimed(self):
        assert classify_failed_release(4, RequestStatus.OPEN) == NotClaimed(4, "open")
