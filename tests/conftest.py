"""
Shared fixtures for engine tests
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dispatch_engine.booking import BookingLifecycleManager
from dispatch_engine.events import EventBus
from dispatch_engine.infra import InMemoryDispatchRepository
from dispatch_engine.models import (
    AvailabilityStatus,
    Booking,
    ComplexityClass,
    ServiceType,
    Team,
    TeamMember,
    TeamRole,
    Technician,
    TechnicianLevel,
)

FIXED_NOW = datetime(2024, 1, 5, 10, 30, tzinfo=timezone.utc)


def make_technician(technician_id: str, **overrides) -> Technician:
    fields = {
        "id": technician_id,
        "name": technician_id.replace("_", " ").title(),
        "level": TechnicianLevel.TECHNICIAN,
        "skills": ["cctv"],
        "service_areas": ["Accra"],
    }
    fields.update(overrides)
    return Technician(**fields)


def make_booking(booking_id: str = "bk_0001", **overrides) -> Booking:
    fields = {
        "id": booking_id,
        "customer_id": "cust_001",
        "service_type": ServiceType.INSTALLATION,
        "complexity": ComplexityClass.MODERATE,
        "required_skills": ["cctv"],
        "city": "Accra",
    }
    fields.update(overrides)
    return Booking(**fields)


@pytest.fixture
def technicians():
    """A small crew around Accra plus one out-of-area senior"""
    return [
        make_technician(
            "tech_lead",
            level=TechnicianLevel.LEAD,
            skills=["cctv", "access_control", "networking"],
            service_areas=["Accra", "Tema"],
            average_rating=4.8,
            rating_count=20,
        ),
        make_technician(
            "tech_senior",
            level=TechnicianLevel.SENIOR,
            skills=["cctv", "networking"],
            average_rating=4.5,
            rating_count=10,
        ),
        make_technician("tech_mid", skills=["cctv", "alarm_systems"], average_rating=4.0, rating_count=4),
        make_technician("tech_junior", level=TechnicianLevel.JUNIOR, skills=["cctv", "solar"]),
        make_technician("tech_busy", availability=AvailabilityStatus.BUSY, skills=["cctv"]),
        make_technician("tech_kumasi", level=TechnicianLevel.SENIOR, service_areas=["Kumasi"]),
    ]


@pytest.fixture
def team():
    return Team(
        id="team_alpha",
        name="Alpha Crew",
        lead_technician_id="tech_senior",
        members=[
            TeamMember(technician_id="tech_senior", name="Tech Senior", level=TechnicianLevel.SENIOR, role=TeamRole.LEAD),
            TeamMember(technician_id="tech_mid", name="Tech Mid", level=TechnicianLevel.TECHNICIAN),
            TeamMember(technician_id="tech_junior", name="Tech Junior", level=TechnicianLevel.JUNIOR),
        ],
        service_areas=["Accra"],
    )


@pytest.fixture
def repository(technicians, team):
    return InMemoryDispatchRepository(technicians=technicians, teams=[team])


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Events published on the bus, in order"""
    events = []
    event_bus.subscribe("*", events.append)
    return events


@pytest.fixture
def lifecycle(repository, event_bus):
    return BookingLifecycleManager(repository, event_bus, clock=lambda: FIXED_NOW)


@pytest.fixture
def pending_booking(lifecycle):
    return lifecycle.create_booking(make_booking(), actor="cust_001")
