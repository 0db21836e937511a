"""Composition session Core package"""

from src.core.session.expiry import (
    CompositionSession,
    expires_at,
    is_expired,
    to_timedelta,
)

__all__ = ["CompositionSession", "expires_at", "is_expired", "to_timedelta"]
