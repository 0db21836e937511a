"""Event type constants

Every event is emitted after the change it describes has been committed.
"""


class EventTypes:
    """Event type strings"""

    # === Request lifecycle ===
    REQUEST_CREATED = "request_created"
    REQUEST_CLAIMED = "request_claimed"
    REQUEST_RELEASED = "request_released"
    REQUEST_STATUS_CHANGED = "request_status_changed"
    REQUEST_PROGRESSED = "request_progressed"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_DENIED = "request_denied"
    REQUEST_FORCED = "request_forced"

    # === Character registry ===
    CHARACTER_REGISTERED = "character_registered"
    CHARACTER_DELETED = "character_deleted"
    CHARACTER_REQUESTS_CANCELLED = "character_requests_cancelled"

    # === Sessions ===
    SESSIONS_SWEPT = "sessions_swept"
