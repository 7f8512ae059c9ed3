"""
Database session management and SQL storage adapters.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Iterator, List, Optional, Sequence

from loguru import logger
from sqlalchemy import create_engine, select, text, update
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dispatch_engine.config.constants import TOP_PRODUCTS_DOC_ID
from dispatch_engine.config.settings import settings
from dispatch_engine.infra.ports import AggregateSink, DispatchRepository, PricingStore, RepositorySession
from dispatch_engine.models.domain import Booking, BookingStatus, ServicePricing, Team, Technician
from dispatch_engine.models.results import AllTimeTopProducts, DailyAggregate, ProductAggregate
from dispatch_engine.models.tables import (
    Base,
    BookingRow,
    DailyAggregateRow,
    ServicePricingRow,
    TeamRow,
    TechnicianRow,
    TopProductsRow,
)
from dispatch_engine.utils.dates import utc_now
from dispatch_engine.utils.errors import (
    BookingNotFound,
    ConcurrencyConflict,
    PricingNotFound,
    TeamNotFound,
    TechnicianNotFound,
)

PRICING_ROW_ID = "service_pricing"


class Database:
    """
    SQL database connection manager

    Handles engine creation, session management and schema setup.
    SQLite in-memory URLs share one connection so every session sees the
    same database.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        """
        Initialize database connection

        Args:
            url: SQLAlchemy database URL (defaults to DISPATCH_DATABASE_URL)
            echo: Log emitted SQL
        """
        self.url = make_url(url or settings.database_url)

        engine_kwargs = {"echo": echo}
        if self.url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
            else:
                Path(self.url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=3600)

        logger.info(f"Connecting to {self.url.get_backend_name()}: {self.url.render_as_string(hide_password=True)}")
        self.engine = create_engine(self.url, **engine_kwargs)

        # Session factory
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Database tables ensured")

    def check_connection(self) -> None:
        """Run a trivial query; raises when the database is unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.success("Database connection OK")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    def get_session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations

        Usage:
            with db.session_scope() as session:
                session.get(BookingRow, "bk-1")
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()


# Global database instance (lazy initialization)
_db_instance = None


def get_database() -> Database:
    """Get or create global database instance"""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
        _db_instance.create_tables()
    return _db_instance


# ============================================================================
# Dispatch repository
# ============================================================================

class _SqlSession(RepositorySession):
    """Repository session over one SQLAlchemy session"""

    def __init__(self, session: Session):
        self.session = session

    # Bookings

    def get_booking(self, booking_id: str) -> Booking:
        row = self.session.get(BookingRow, booking_id)
        if row is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return Booking.model_validate(row.payload)

    def add_booking(self, booking: Booking) -> None:
        if self.session.get(BookingRow, booking.id) is not None:
            raise ValueError(f"Booking {booking.id} already exists")
        self.session.add(
            BookingRow(
                id=booking.id,
                status=booking.status.value,
                city=booking.city,
                technician_id=booking.technician_id,
                completed_at=booking.completed_at,
                version=1,
                payload=booking.model_dump(mode="json"),
                updated_at=booking.updated_at,
            )
        )

    def save_booking(self, booking: Booking, expected_status: BookingStatus) -> None:
        result = self.session.execute(
            update(BookingRow)
            .where(BookingRow.id == booking.id, BookingRow.status == expected_status.value)
            .values(
                status=booking.status.value,
                city=booking.city,
                technician_id=booking.technician_id,
                completed_at=booking.completed_at,
                version=BookingRow.version + 1,
                payload=booking.model_dump(mode="json"),
                updated_at=booking.updated_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            actual = self.session.execute(
                select(BookingRow.status).where(BookingRow.id == booking.id)
            ).scalar_one_or_none()
            if actual is None:
                raise BookingNotFound(f"Booking {booking.id} not found")
            raise ConcurrencyConflict(booking.id, expected_status, actual)

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        query = select(BookingRow).order_by(BookingRow.id)
        if status is not None:
            query = query.where(BookingRow.status == BookingStatus(status).value)
        return [Booking.model_validate(row.payload) for row in self.session.scalars(query)]

    # Technicians

    def get_technician(self, technician_id: str) -> Technician:
        row = self.session.get(TechnicianRow, technician_id, with_for_update=True)
        if row is None:
            raise TechnicianNotFound(f"Technician {technician_id} not found")
        return Technician.model_validate(row.payload)

    def save_technician(self, technician: Technician) -> None:
        row = self.session.get(TechnicianRow, technician.id)
        if row is None:
            row = TechnicianRow(id=technician.id)
            self.session.add(row)
        row.availability = technician.availability.value
        row.payload = technician.model_dump(mode="json")
        row.updated_at = utc_now()

    def list_technicians(self) -> List[Technician]:
        rows = self.session.scalars(select(TechnicianRow).order_by(TechnicianRow.id))
        return [Technician.model_validate(row.payload) for row in rows]

    # Teams

    def get_team(self, team_id: str) -> Team:
        row = self.session.get(TeamRow, team_id)
        if row is None:
            raise TeamNotFound(f"Team {team_id} not found")
        return Team.model_validate(row.payload)

    def save_team(self, team: Team) -> None:
        row = self.session.get(TeamRow, team.id)
        if row is None:
            row = TeamRow(id=team.id)
            self.session.add(row)
        row.is_active = team.is_active
        row.payload = team.model_dump(mode="json")
        row.updated_at = utc_now()

    def list_teams(self) -> List[Team]:
        rows = self.session.scalars(select(TeamRow).order_by(TeamRow.id))
        return [Team.model_validate(row.payload) for row in rows]


class SqlDispatchRepository(DispatchRepository):
    """
    Repository over SQL tables.

    Booking writes are ``UPDATE ... WHERE status = :expected``; a zero
    row count means another writer got there first.
    """

    def __init__(self, database: Database):
        self.database = database

    @contextmanager
    def transaction(self) -> Iterator[RepositorySession]:
        with self.database.session_scope() as session:
            yield _SqlSession(session)


# ============================================================================
# Analytics and pricing stores
# ============================================================================

class SqlAggregateStore(AggregateSink):
    """Daily aggregates and the all-time record in SQL tables"""

    def __init__(self, database: Database):
        self.database = database

    def write_daily(self, records: Sequence[DailyAggregate]) -> None:
        now = utc_now()
        with self.database.session_scope() as session:
            for record in records:
                row = session.get(DailyAggregateRow, record.date_key)
                if row is None:
                    row = DailyAggregateRow(date_key=record.date_key, created_at=now)
                    session.add(row)
                row.date = datetime.strptime(record.date_key, "%Y-%m-%d").date()
                row.revenue = record.revenue
                row.orders = record.orders
                row.top_products = [product.to_dict() for product in record.top_products]
                row.updated_at = now
        logger.debug(f"Upserted {len(records)} daily aggregates")

    def write_all_time(self, record: AllTimeTopProducts) -> None:
        with self.database.session_scope() as session:
            row = session.get(TopProductsRow, TOP_PRODUCTS_DOC_ID)
            if row is None:
                row = TopProductsRow(id=TOP_PRODUCTS_DOC_ID)
                session.add(row)
            row.products = [product.to_dict() for product in record.products]
            row.generated_at = record.generated_at
            row.updated_at = utc_now()

    def get_daily(self, date_key: str) -> Optional[DailyAggregate]:
        with self.database.session_scope() as session:
            row = session.get(DailyAggregateRow, date_key)
            return _daily_from_row(row) if row is not None else None

    def list_daily(self) -> List[DailyAggregate]:
        with self.database.session_scope() as session:
            rows = session.scalars(select(DailyAggregateRow).order_by(DailyAggregateRow.date_key))
            return [_daily_from_row(row) for row in rows]

    def get_all_time(self) -> Optional[AllTimeTopProducts]:
        with self.database.session_scope() as session:
            row = session.get(TopProductsRow, TOP_PRODUCTS_DOC_ID)
            if row is None:
                return None
            return AllTimeTopProducts(
                products=tuple(ProductAggregate(**product) for product in row.products),
                generated_at=_as_utc(row.generated_at),
            )


class SqlPricingStore(PricingStore):
    def __init__(self, database: Database):
        self.database = database

    def load(self) -> ServicePricing:
        with self.database.session_scope() as session:
            row = session.get(ServicePricingRow, PRICING_ROW_ID)
            if row is None:
                raise PricingNotFound("No service pricing record stored")
            return ServicePricing(
                prices=row.prices,
                last_updated=_as_utc(row.last_updated),
                updated_by=row.updated_by,
            )

    def save(self, pricing: ServicePricing) -> None:
        with self.database.session_scope() as session:
            row = session.get(ServicePricingRow, PRICING_ROW_ID)
            if row is None:
                row = ServicePricingRow(id=PRICING_ROW_ID)
                session.add(row)
            row.prices = {service.value: price for service, price in pricing.prices.items()}
            row.last_updated = pricing.last_updated
            row.updated_by = pricing.updated_by


def _daily_from_row(row: DailyAggregateRow) -> DailyAggregate:
    return DailyAggregate(
        date_key=row.date_key,
        revenue=row.revenue,
        orders=row.orders,
        top_products=tuple(ProductAggregate(**product) for product in row.top_products),
    )


def _as_utc(moment: datetime) -> datetime:
    # SQLite drops tzinfo on round trip
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
