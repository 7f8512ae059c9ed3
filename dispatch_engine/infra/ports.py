"""
Storage ports

The engine owns no persistence technology. Collaborators provide these
interfaces; in-memory and SQLAlchemy adapters ship with the package.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import List, Optional, Sequence

from dispatch_engine.models.domain import Booking, BookingStatus, ServicePricing, Team, Technician
from dispatch_engine.models.results import AllTimeTopProducts, DailyAggregate


class RepositorySession(ABC):
    """
    Reads and writes inside one repository transaction.

    Everything written through a session commits together or not at all.
    """

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking:
        """Return a copy of the booking; raises BookingNotFound."""

    @abstractmethod
    def add_booking(self, booking: Booking) -> None:
        """Insert a new booking; raises ValueError when the id exists."""

    @abstractmethod
    def save_booking(self, booking: Booking, expected_status: BookingStatus) -> None:
        """
        Compare-and-set write of a booking.

        Raises:
            ConcurrencyConflict: stored status differs from ``expected_status``
        """

    @abstractmethod
    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        ...

    @abstractmethod
    def get_technician(self, technician_id: str) -> Technician:
        """Return a copy of the technician; raises TechnicianNotFound."""

    @abstractmethod
    def save_technician(self, technician: Technician) -> None:
        ...

    @abstractmethod
    def list_technicians(self) -> List[Technician]:
        ...

    @abstractmethod
    def get_team(self, team_id: str) -> Team:
        """Return a copy of the team; raises TeamNotFound."""

    @abstractmethod
    def save_team(self, team: Team) -> None:
        ...

    @abstractmethod
    def list_teams(self) -> List[Team]:
        ...


class DispatchRepository(ABC):
    """Transactional store for bookings, technicians and teams"""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[RepositorySession]:
        """
        Open a unit of work.

        Usage:
            with repository.transaction() as session:
                booking = session.get_booking("bk-1")
        """


class AggregateSink(ABC):
    """Destination for finalized analytics records (upsert by key)"""

    @abstractmethod
    def write_daily(self, records: Sequence[DailyAggregate]) -> None:
        """Upsert one batch of daily records atomically, replacing whole values."""

    @abstractmethod
    def write_all_time(self, record: AllTimeTopProducts) -> None:
        ...

    @abstractmethod
    def get_daily(self, date_key: str) -> Optional[DailyAggregate]:
        ...

    @abstractmethod
    def list_daily(self) -> List[DailyAggregate]:
        """All daily records sorted by date key."""

    @abstractmethod
    def get_all_time(self) -> Optional[AllTimeTopProducts]:
        ...


class PricingStore(ABC):
    """Holder of the single service pricing record"""

    @abstractmethod
    def load(self) -> ServicePricing:
        """Raises PricingNotFound when no record exists."""

    @abstractmethod
    def save(self, pricing: ServicePricing) -> None:
        ...
