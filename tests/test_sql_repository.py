"""
Tests for the SQLAlchemy storage adapters (in-memory SQLite)
"""

from datetime import datetime, timezone

import pytest

from conftest import FIXED_NOW, make_booking
from dispatch_engine.analytics import run_backfill
from dispatch_engine.booking import BookingLifecycleManager
from dispatch_engine.infra import Database, SqlAggregateStore, SqlDispatchRepository, SqlPricingStore
from dispatch_engine.models import Assignee, BookingStatus, ServiceType
from dispatch_engine.settlement import PricingService
from dispatch_engine.technicians import TechnicianDirectory
from dispatch_engine.utils.errors import ConcurrencyConflict, NotAssignable, PricingNotFound


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    return db


@pytest.fixture
def sql_repository(database, technicians, team):
    repository = SqlDispatchRepository(database)
    directory = TechnicianDirectory(repository)
    for technician in technicians:
        directory.register_technician(technician)
    directory.register_team(team)
    return repository


@pytest.fixture
def sql_lifecycle(sql_repository):
    return BookingLifecycleManager(sql_repository, clock=lambda: FIXED_NOW)


def test_booking_round_trip_through_lifecycle(sql_lifecycle, sql_repository):
    sql_lifecycle.create_booking(make_booking("bk_sql"))
    sql_lifecycle.assign_technician("bk_sql", Assignee("tech_mid"), actor="admin")
    for status in (BookingStatus.EN_ROUTE, BookingStatus.ARRIVED):
        sql_lifecycle.transition("bk_sql", status, actor="tech_mid")
    booking = sql_lifecycle.complete("bk_sql", final_cost=320.0, rating=5)

    stored = sql_lifecycle.get_booking("bk_sql")
    assert stored.status == BookingStatus.COMPLETED
    assert stored.final_cost == 320.0
    assert stored.completed_at == FIXED_NOW
    assert stored.model_dump() == booking.model_dump()

    with sql_repository.transaction() as session:
        technician = session.get_technician("tech_mid")
        assert [b.id for b in session.list_bookings(BookingStatus.COMPLETED)] == ["bk_sql"]
    assert technician.current_job_ids == []
    assert technician.total_jobs_completed == 1


def test_compare_and_set_rejects_stale_status(sql_lifecycle, sql_repository):
    sql_lifecycle.create_booking(make_booking("bk_cas"))
    stale = sql_lifecycle.get_booking("bk_cas")
    sql_lifecycle.assign_technician("bk_cas", Assignee("tech_mid"), actor="admin")

    stale.status = BookingStatus.CANCELLED
    with pytest.raises(ConcurrencyConflict):
        with sql_repository.transaction() as session:
            session.save_booking(stale, expected_status=BookingStatus.PENDING)

    assert sql_lifecycle.get_booking("bk_cas").status == BookingStatus.CONFIRMED


def test_failed_assignment_rolls_back(sql_lifecycle, sql_repository):
    sql_lifecycle.create_booking(make_booking("bk_rb"))
    sql_lifecycle.assign_technician("bk_rb", Assignee("tech_mid"), actor="admin")

    with pytest.raises(NotAssignable):
        sql_lifecycle.assign_technician("bk_rb", Assignee("tech_senior"), actor="admin")

    with sql_repository.transaction() as session:
        assert session.get_technician("tech_senior").current_job_ids == []


def test_check_connection(database):
    database.check_connection()


def test_team_round_trip(sql_repository, team):
    directory = TechnicianDirectory(sql_repository)
    assert directory.get_team("team_alpha").model_dump() == team.model_dump()
    assert [t.id for t in directory.list_teams(service_area="Accra")] == ["team_alpha"]


def test_aggregate_store_upserts(database):
    store = SqlAggregateStore(database)
    orders = [
        {"createdAt": "2024-01-05T10:00:00Z", "paymentStatus": "paid", "totalAmount": 100,
         "items": [{"productId": "p1", "productName": "Camera", "quantity": 2, "subtotal": 100}]},
    ]

    run_backfill(orders, store, clock=lambda: FIXED_NOW)
    run_backfill(orders, store, clock=lambda: FIXED_NOW)

    daily = store.list_daily()
    assert len(daily) == 1
    assert daily[0].revenue == 100.0
    assert daily[0].top_products[0].product_name == "Camera"

    all_time = store.get_all_time()
    assert all_time.products[0].units == 2
    assert all_time.generated_at == FIXED_NOW


def test_pricing_store(database):
    store = SqlPricingStore(database)
    with pytest.raises(PricingNotFound):
        store.load()

    service = PricingService(store, clock=lambda: datetime(2024, 2, 1, tzinfo=timezone.utc))
    service.update_pricing(
        {"installation": 550.0, "maintenance": 150.0, "repair": 200.0, "inspection": 100.0}, actor="admin_1"
    )

    pricing = store.load()
    assert pricing.price_for(ServiceType.INSTALLATION) == 550.0
    assert pricing.updated_by == "admin_1"
    assert pricing.last_updated == datetime(2024, 2, 1, tzinfo=timezone.utc)
