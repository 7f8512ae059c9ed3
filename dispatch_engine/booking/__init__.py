"""
Booking Lifecycle Manager - status state machine and assignment
"""

from dispatch_engine.booking.lifecycle import (
    ALLOWED_TRANSITIONS,
    BookingLifecycleManager,
    can_transition,
    to_assignee,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BookingLifecycleManager",
    "can_transition",
    "to_assignee",
]
