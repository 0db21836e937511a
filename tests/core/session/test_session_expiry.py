"""Session lifetime helper tests"""

from datetime import datetime, timedelta

import pytest

from src.core.session import expires_at, is_expired, to_timedelta

NOW = datetime(2024, 5, 1, 12, 0, 0)


def test_seconds_and_timedelta_accepted():
    assert to_timedelta(60) == timedelta(minutes=1)
    assert to_timedelta(timedelta(hours=24)) == timedelta(days=1)


@pytest.mark.parametrize("ttl", [0, -5, timedelta(0)])
def test_non_positive_ttl_rejected(ttl):
    with pytest.raises(ValueError):
        to_timedelta(ttl)


def test_expires_at():
    assert expires_at(NOW, 86400) == NOW + timedelta(days=1)


def test_expiry_instant_counts_as_expired():
    assert is_expired(NOW, NOW)
    assert is_expired(NOW - timedelta(seconds=1), NOW)
    assert not is_expired(NOW + timedelta(seconds=1), NOW)
