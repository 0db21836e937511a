"""Duplicate submission window tests"""

from datetime import datetime, timedelta

from src.core.request.duplicate_guard import SubmissionKey, window_start

NOW = datetime(2024, 5, 1, 12, 0, 0)


def test_window_start():
    assert window_start(NOW, 5000) == NOW - timedelta(seconds=5)


def test_zero_window_starts_now():
    assert window_start(NOW, 0) == NOW


def test_keys_differ_by_character():
    first = SubmissionKey("user-1", "Thalia", "tailoring", "bag", "bag-1")
    second = SubmissionKey("user-1", "Bramble", "tailoring", "bag", "bag-1")
    assert first != second
    assert first == SubmissionKey("user-1", "Thalia", "tailoring", "bag", "bag-1")
