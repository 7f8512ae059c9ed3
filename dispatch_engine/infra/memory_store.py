"""
In-memory adapters for the storage ports.

Used by tests and by hosts that embed the engine over their own snapshot.
Transactions hold a re-entrant lock and stage writes, so concurrent
lifecycle operations serialize and a failed operation leaves no trace.
"""

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from loguru import logger

from dispatch_engine.infra.ports import AggregateSink, DispatchRepository, PricingStore, RepositorySession
from dispatch_engine.models.domain import Booking, BookingStatus, ServicePricing, Team, Technician
from dispatch_engine.models.results import AllTimeTopProducts, DailyAggregate
from dispatch_engine.utils.errors import (
    BookingNotFound,
    ConcurrencyConflict,
    PricingNotFound,
    TeamNotFound,
    TechnicianNotFound,
)


class _InMemorySession(RepositorySession):
    """Session that stages copies until the transaction commits"""

    def __init__(self, repository: "InMemoryDispatchRepository"):
        self._repo = repository
        self._bookings: Dict[str, Booking] = {}
        self._technicians: Dict[str, Technician] = {}
        self._teams: Dict[str, Team] = {}

    # Bookings

    def get_booking(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id) or self._repo._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking.model_copy(deep=True)

    def add_booking(self, booking: Booking) -> None:
        if booking.id in self._bookings or booking.id in self._repo._bookings:
            raise ValueError(f"Booking {booking.id} already exists")
        self._bookings[booking.id] = booking.model_copy(deep=True)

    def save_booking(self, booking: Booking, expected_status: BookingStatus) -> None:
        current = self.get_booking(booking.id)
        if current.status != expected_status:
            raise ConcurrencyConflict(booking.id, expected_status, current.status)
        self._bookings[booking.id] = booking.model_copy(deep=True)

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        merged = {**self._repo._bookings, **self._bookings}
        return [
            booking.model_copy(deep=True)
            for booking in merged.values()
            if status is None or booking.status == status
        ]

    # Technicians

    def get_technician(self, technician_id: str) -> Technician:
        technician = self._technicians.get(technician_id) or self._repo._technicians.get(technician_id)
        if technician is None:
            raise TechnicianNotFound(f"Technician {technician_id} not found")
        return technician.model_copy(deep=True)

    def save_technician(self, technician: Technician) -> None:
        self._technicians[technician.id] = technician.model_copy(deep=True)

    def list_technicians(self) -> List[Technician]:
        merged = {**self._repo._technicians, **self._technicians}
        return [technician.model_copy(deep=True) for technician in merged.values()]

    # Teams

    def get_team(self, team_id: str) -> Team:
        team = self._teams.get(team_id) or self._repo._teams.get(team_id)
        if team is None:
            raise TeamNotFound(f"Team {team_id} not found")
        return team.model_copy(deep=True)

    def save_team(self, team: Team) -> None:
        self._teams[team.id] = team.model_copy(deep=True)

    def list_teams(self) -> List[Team]:
        merged = {**self._repo._teams, **self._teams}
        return [team.model_copy(deep=True) for team in merged.values()]

    def _commit(self) -> None:
        self._repo._bookings.update(self._bookings)
        self._repo._technicians.update(self._technicians)
        self._repo._teams.update(self._teams)


class InMemoryDispatchRepository(DispatchRepository):
    """Dictionary-backed repository with serialized transactions"""

    def __init__(
        self,
        technicians: Iterable[Technician] = (),
        teams: Iterable[Team] = (),
        bookings: Iterable[Booking] = (),
    ):
        self._lock = RLock()
        self._technicians: Dict[str, Technician] = {t.id: t.model_copy(deep=True) for t in technicians}
        self._teams: Dict[str, Team] = {t.id: t.model_copy(deep=True) for t in teams}
        self._bookings: Dict[str, Booking] = {b.id: b.model_copy(deep=True) for b in bookings}

    @contextmanager
    def transaction(self) -> Iterator[RepositorySession]:
        with self._lock:
            session = _InMemorySession(self)
            yield session
            session._commit()


class InMemoryAggregateStore(AggregateSink):
    """Keeps daily aggregates keyed by date and the all-time record"""

    def __init__(self):
        self._lock = RLock()
        self._daily: Dict[str, DailyAggregate] = {}
        self._all_time: Optional[AllTimeTopProducts] = None
        self.batches_written = 0

    def write_daily(self, records: Sequence[DailyAggregate]) -> None:
        with self._lock:
            for record in records:
                self._daily[record.date_key] = record
            self.batches_written += 1
        logger.debug(f"Stored batch of {len(records)} daily aggregates")

    def write_all_time(self, record: AllTimeTopProducts) -> None:
        with self._lock:
            self._all_time = record

    def get_daily(self, date_key: str) -> Optional[DailyAggregate]:
        return self._daily.get(date_key)

    def list_daily(self) -> List[DailyAggregate]:
        with self._lock:
            return [self._daily[key] for key in sorted(self._daily)]

    def get_all_time(self) -> Optional[AllTimeTopProducts]:
        return self._all_time


class InMemoryPricingStore(PricingStore):
    def __init__(self, pricing: Optional[ServicePricing] = None):
        self._pricing = pricing

    def load(self) -> ServicePricing:
        if self._pricing is None:
            raise PricingNotFound("No service pricing record stored")
        return self._pricing.model_copy(deep=True)

    def save(self, pricing: ServicePricing) -> None:
        self._pricing = pricing.model_copy(deep=True)
