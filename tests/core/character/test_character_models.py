"""Character registration validation tests"""

from src.core.character import clean_name, validate_registration
from src.core.request.errors import InvalidField, MissingField


def test_valid_registration():
    assert validate_registration("user-1", "Thalia", "main") is None
    assert validate_registration("user-1", "Thalia", "alt") is None


def test_missing_owner():
    assert validate_registration("", "Thalia", "main") == MissingField("owner_id")


def test_blank_name():
    assert validate_registration("user-1", "   ", "main") == MissingField("name")
    assert validate_registration("user-1", None, "main") == MissingField("name")


def test_unknown_kind():
    assert validate_registration("user-1", "Thalia", "twink") == InvalidField("kind", "twink")


def test_clean_name_trims():
    assert clean_name("  Thalia ") == "Thalia"
    assert clean_name(None) == ""
