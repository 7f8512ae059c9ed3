"""
Hard filters for dispatch candidates.

A filter returns the list of reasons a candidate fails; an empty list
means the candidate passes.
"""

from typing import List

from dispatch_engine.config.constants import MIN_LEVEL_FOR_COMPLEXITY
from dispatch_engine.models.domain import (
    AvailabilityStatus,
    Booking,
    PriorityLevel,
    Technician,
    TechnicianLevel,
)


def minimum_level(booking: Booking) -> TechnicianLevel:
    return MIN_LEVEL_FOR_COMPLEXITY[booking.complexity]


def is_dispatchable(technician: Technician, booking: Booking) -> bool:
    """Available technicians pass; emergency-only technicians pass for emergency bookings."""
    if technician.availability == AvailabilityStatus.AVAILABLE:
        return True
    return (
        technician.availability == AvailabilityStatus.EMERGENCY
        and booking.priority == PriorityLevel.EMERGENCY
    )


def support_rejections(technician: Technician, booking: Booking) -> List[str]:
    """Availability and area checks (applied to supporting team members)."""
    reasons = []
    if not is_dispatchable(technician, booking):
        reasons.append(f"Not available ({technician.availability.value})")
    if not technician.covers(booking.city):
        reasons.append(f"Does not cover {booking.city}")
    return reasons


def lead_rejections(technician: Technician, booking: Booking) -> List[str]:
    """Every hard filter: availability, service area and minimum level."""
    reasons = support_rejections(technician, booking)
    required = minimum_level(booking)
    if not technician.level.at_least(required):
        reasons.append(
            f"Level {technician.level.value} below required {required.value} for {booking.complexity.value} jobs"
        )
    return reasons
