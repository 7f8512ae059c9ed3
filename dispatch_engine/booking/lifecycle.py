"""
Booking Lifecycle Manager

Owns the booking status state machine and the assignment fields.

Every operation is one repository transaction: read the booking, validate
the move, apply the status write together with the technician workload
change, then compare-and-set against the status that was read. Events are
published only after the transaction commits.
"""

import math
from datetime import date, datetime
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Union

from loguru import logger

from dispatch_engine.events import EngineEvent, EventBus
from dispatch_engine.infra.ports import DispatchRepository, RepositorySession
from dispatch_engine.models.domain import (
    Assignee,
    Booking,
    BookingStatus,
    PartUsage,
    StatusChange,
    Team,
    Technician,
    TimeSlot,
)
from dispatch_engine.models.results import Recommendation
from dispatch_engine.technicians.directory import (
    attach_job,
    record_completion,
    record_rating,
    release_job,
)
from dispatch_engine.utils.dates import utc_now
from dispatch_engine.utils.errors import ConcurrencyConflict, InvalidTransition, NotAssignable

S = BookingStatus

# Cancellation and rescheduling are allowed from every open state.
_OPEN_EXITS = frozenset({S.CANCELLED, S.RESCHEDULED})

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED}) | _OPEN_EXITS,
    S.CONFIRMED: frozenset({S.EN_ROUTE}) | _OPEN_EXITS,
    S.EN_ROUTE: frozenset({S.ARRIVED}) | _OPEN_EXITS,
    S.ARRIVED: frozenset({S.IN_PROGRESS, S.COMPLETED}) | _OPEN_EXITS,
    S.IN_PROGRESS: frozenset({S.COMPLETED}) | _OPEN_EXITS,
    S.RESCHEDULED: frozenset({S.PENDING, S.CONFIRMED}) | _OPEN_EXITS,
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

COMPLETABLE_STATUSES = frozenset({S.ARRIVED, S.IN_PROGRESS})

AssigneeLike = Union[Assignee, Technician, Team, Recommendation]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Whether the adjacency table allows ``current -> target``."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def to_assignee(value: AssigneeLike) -> Assignee:
    if isinstance(value, Assignee):
        return value
    if isinstance(value, Technician):
        return Assignee.from_technician(value)
    if isinstance(value, Team):
        return Assignee.from_team(value)
    if isinstance(value, Recommendation):
        return value.to_assignee()
    raise TypeError(f"Cannot assign a booking to {type(value).__name__}")


class BookingLifecycleManager:
    """
    Applies status changes and assignments atomically.

    Responsibilities:
    - Validate transitions against the fixed adjacency table
    - Stamp assignment and completion fields
    - Keep technician workload in step with the booking status
    - Publish lifecycle events for subscribers
    """

    def __init__(
        self,
        repository: DispatchRepository,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.events = event_bus or EventBus()
        self._clock = clock

    def get_booking(self, booking_id: str) -> Booking:
        with self.repository.transaction() as session:
            return session.get_booking(booking_id)

    def create_booking(self, booking: Booking, actor: str = "system") -> Booking:
        """Store a new pending, unassigned booking."""
        if booking.status != S.PENDING or booking.is_assigned:
            raise InvalidTransition(booking.id, booking.status, S.PENDING, "new bookings start pending and unassigned")

        now = self._clock()
        stored = booking.model_copy(deep=True)
        stored.created_at = now
        stored.updated_at = now
        stored.status_history = [StatusChange(to_status=S.PENDING, actor=actor, at=now)]

        with self.repository.transaction() as session:
            session.add_booking(stored)

        logger.info(f"Booking {stored.id} created ({stored.service_type.value}, {stored.complexity.value})")
        self._publish("booking_created", stored, actor, None)
        return stored

    def transition(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: str,
        expected_status: Optional[BookingStatus] = None,
        note: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along the state machine.

        Args:
            booking_id: Booking to change
            new_status: Target status
            actor: Who requested the change
            expected_status: Status the caller last saw (stale -> ConcurrencyConflict)
            note: Optional free text stored in the status history

        Raises:
            InvalidTransition: target not reachable, or it requires a dedicated operation
        """
        new_status = BookingStatus(new_status)

        def change(session: RepositorySession, booking: Booking) -> None:
            current = booking.status
            if new_status == S.COMPLETED:
                raise InvalidTransition(booking.id, current, new_status, "use complete() to record the final cost")
            if current == S.PENDING and new_status == S.CONFIRMED:
                raise InvalidTransition(booking.id, current, new_status, "use assign_technician()")
            if not can_transition(current, new_status):
                raise InvalidTransition(booking.id, current, new_status)
            if current == S.RESCHEDULED and new_status == S.CONFIRMED and not booking.is_assigned:
                raise InvalidTransition(booking.id, current, new_status, "booking has no assignee")

            if new_status == S.CANCELLED and booking.is_assigned:
                release_job(session, booking.assigned_member_ids, booking.id)
            if current == S.RESCHEDULED and new_status == S.PENDING and booking.is_assigned:
                release_job(session, booking.assigned_member_ids, booking.id)
                _clear_assignment(booking)

            booking.status = new_status

        booking, previous = self._apply(booking_id, expected_status, actor, change, note)
        logger.info(f"Booking {booking_id}: {previous.value} → {booking.status.value} by {actor}")
        self._publish("booking_transitioned", booking, actor, previous)
        return booking

    def assign_technician(
        self,
        booking_id: str,
        assignee: AssigneeLike,
        actor: str = "admin",
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking:
        """
        Assign a technician or team to a pending booking.

        Moves the booking to confirmed and adds the job to every assigned
        member's workload in the same transaction.

        Raises:
            NotAssignable: booking is not pending
        """
        target = to_assignee(assignee)

        def change(session: RepositorySession, booking: Booking) -> None:
            if booking.status != S.PENDING:
                raise NotAssignable(booking.id, booking.status)
            if target.team_id is not None:
                session.get_team(target.team_id)

            lead = session.get_technician(target.technician_id)
            attach_job(session, target, booking.id)

            booking.technician_id = lead.id
            booking.technician_name = lead.name
            booking.team_id = target.team_id
            booking.assigned_member_ids = list(target.member_ids)
            booking.assigned_at = self._clock()
            booking.status = S.CONFIRMED

        booking, previous = self._apply(booking_id, expected_status, actor, change)
        logger.success(
            f"Booking {booking_id} assigned to {target.name or target.technician_id} "
            f"({len(target.member_ids)} technician(s))"
        )
        self._publish(
            "booking_assigned",
            booking,
            actor,
            previous,
            {"technician_id": booking.technician_id, "team_id": booking.team_id, "member_ids": booking.assigned_member_ids},
        )
        return booking

    def complete(
        self,
        booking_id: str,
        final_cost: float,
        notes: str = "",
        rating: Optional[int] = None,
        actor: str = "technician",
        parts_used: Optional[Iterable[PartUsage]] = None,
        labor_hours: Optional[float] = None,
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking:
        """
        Record job completion.

        Legal only from arrived or in_progress. Sets the final cost and
        completion time, releases the job from the assignees' workload and
        updates their performance stats.
        """
        if final_cost is None or not math.isfinite(final_cost) or final_cost < 0:
            raise ValueError(f"final_cost must be a finite non-negative amount, got {final_cost}")
        if rating is not None and not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")

        def change(session: RepositorySession, booking: Booking) -> None:
            if booking.status not in COMPLETABLE_STATUSES:
                raise InvalidTransition(booking.id, booking.status, S.COMPLETED, "job must be arrived or in progress")

            if booking.is_assigned:
                release_job(session, booking.assigned_member_ids, booking.id)
                record_completion(session, booking.assigned_member_ids, rating)

            booking.status = S.COMPLETED
            booking.final_cost = float(final_cost)
            booking.completed_at = self._clock()
            booking.service_notes = notes or None
            booking.customer_rating = rating
            if parts_used is not None:
                booking.parts_used = [PartUsage.model_validate(part) for part in parts_used]
            if labor_hours is not None:
                booking.labor_hours = labor_hours

        booking, previous = self._apply(booking_id, expected_status, actor, change)
        logger.success(f"Booking {booking_id} completed (final cost {booking.final_cost:.2f})")
        self._publish("booking_completed", booking, actor, previous, {"final_cost": booking.final_cost})
        return booking

    def cancel(self, booking_id: str, actor: str, reason: Optional[str] = None) -> Booking:
        return self.transition(booking_id, S.CANCELLED, actor, note=reason)

    def reschedule(
        self,
        booking_id: str,
        new_date: date,
        actor: str,
        time_slot: Optional[TimeSlot] = None,
    ) -> Booking:
        """Move the booking to rescheduled with a new preferred date."""

        def change(session: RepositorySession, booking: Booking) -> None:
            if not can_transition(booking.status, S.RESCHEDULED):
                raise InvalidTransition(booking.id, booking.status, S.RESCHEDULED)
            booking.status = S.RESCHEDULED
            booking.preferred_date = new_date
            if time_slot is not None:
                booking.preferred_time_slot = TimeSlot(time_slot)

        booking, previous = self._apply(booking_id, None, actor, change, f"new date {new_date.isoformat()}")
        logger.info(f"Booking {booking_id} rescheduled to {new_date.isoformat()} by {actor}")
        self._publish("booking_transitioned", booking, actor, previous)
        return booking

    def add_review(self, booking_id: str, rating: int, review: str = "", actor: str = "customer") -> Booking:
        """Attach a customer rating to a completed, not yet rated booking."""
        if not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")

        def change(session: RepositorySession, booking: Booking) -> None:
            if booking.status != S.COMPLETED:
                raise InvalidTransition(booking.id, booking.status, booking.status, "only completed bookings can be reviewed")
            if booking.customer_rating is not None:
                raise ValueError(f"Booking {booking.id} already has a rating")
            booking.customer_rating = rating
            booking.customer_review = review or None
            if booking.is_assigned:
                record_rating(session, booking.assigned_member_ids, rating)

        booking, _ = self._apply(booking_id, None, actor, change, record_history=False)
        logger.info(f"Booking {booking_id} reviewed ({rating}/5)")
        self._publish("booking_reviewed", booking, actor, None, {"rating": rating})
        return booking

    # ------------------------------------------------------------------

    def _apply(
        self,
        booking_id: str,
        expected_status: Optional[BookingStatus],
        actor: str,
        change: Callable[[RepositorySession, Booking], None],
        note: Optional[str] = None,
        record_history: bool = True,
    ):
        """Run ``change`` inside one transaction with compare-and-set on status."""
        with self.repository.transaction() as session:
            booking = session.get_booking(booking_id)
            observed = booking.status
            if expected_status is not None and observed != expected_status:
                raise ConcurrencyConflict(booking_id, expected_status, observed)

            change(session, booking)

            now = self._clock()
            booking.updated_at = now
            if record_history:
                booking.status_history.append(
                    StatusChange(from_status=observed, to_status=booking.status, actor=actor, at=now, note=note)
                )
            booking = Booking.model_validate(booking.model_dump())
            session.save_booking(booking, expected_status=observed)

        return booking, observed

    def _publish(
        self,
        event: str,
        booking: Booking,
        actor: Optional[str],
        previous: Optional[BookingStatus],
        payload: Optional[dict] = None,
    ) -> None:
        self.events.publish(
            EngineEvent(
                event=event,
                subject_id=booking.id,
                actor=actor,
                from_status=previous.value if previous is not None else None,
                to_status=booking.status.value,
                payload=payload or {},
            )
        )


def _clear_assignment(booking: Booking) -> None:
    booking.technician_id = None
    booking.technician_name = None
    booking.team_id = None
    booking.assigned_member_ids = []
    booking.assigned_at = None
