"""
Custom error classes for the dispatch engine
"""


class DispatchEngineError(Exception):
    """Base exception for engine errors"""
    pass


class InvalidTransition(DispatchEngineError):
    """Status change not permitted from the booking's current state"""

    def __init__(self, booking_id: str, current, target, detail: str = ""):
        self.booking_id = booking_id
        self.current = current
        self.target = target
        message = f"Booking {booking_id}: cannot move from '{_value(current)}' to '{_value(target)}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NotAssignable(DispatchEngineError):
    """Assignment attempted on a booking that is not pending"""

    def __init__(self, booking_id: str, current):
        self.booking_id = booking_id
        self.current = current
        super().__init__(
            f"Booking {booking_id} is '{_value(current)}'; only pending bookings can be assigned"
        )


class ConcurrencyConflict(DispatchEngineError):
    """Stored booking status no longer matches the status the caller expected"""

    def __init__(self, booking_id: str, expected, actual):
        self.booking_id = booking_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Booking {booking_id} changed concurrently: expected '{_value(expected)}', found '{_value(actual)}'"
        )


class BookingNotFound(DispatchEngineError):
    """Unknown booking id"""
    pass


class TechnicianNotFound(DispatchEngineError):
    """Unknown technician id"""
    pass


class TeamNotFound(DispatchEngineError):
    """Unknown team id"""
    pass


class NotSettleable(DispatchEngineError):
    """Settlement requested for a booking without a final cost"""
    pass


class PricingNotFound(DispatchEngineError):
    """No stored service pricing record"""
    pass


class InvalidPricing(DispatchEngineError):
    """Pricing update missing a service type or carrying a negative price"""
    pass


def _value(status) -> str:
    return getattr(status, "value", status)
