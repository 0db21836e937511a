"""Character registry Core package"""

from src.core.character.models import Character, clean_name, validate_registration

__all__ = ["Character", "clean_name", "validate_registration"]
