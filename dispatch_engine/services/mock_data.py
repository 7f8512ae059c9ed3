"""
Mock data generator for the dispatch engine.
Creates realistic technicians, teams, bookings and paid orders for demos
and property-style tests. Pass a seed for reproducible data; seeded runs
place dates relative to SEEDED_EPOCH instead of the current time.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from faker import Faker
from loguru import logger

from dispatch_engine.infra.memory_store import InMemoryDispatchRepository
from dispatch_engine.models.domain import (
    AvailabilityStatus,
    Booking,
    ComplexityClass,
    PriorityLevel,
    ServiceType,
    Team,
    TeamMember,
    TeamRole,
    Technician,
    TechnicianLevel,
    TimeSlot,
)

# Service skills offered on the platform
SERVICE_SKILLS = [
    "cctv", "access_control", "alarm_systems", "networking", "electrical",
    "solar", "intercom", "smart_home", "fire_detection", "fencing",
]

# Cities served
SERVICE_AREAS = ["Accra", "Kumasi", "Tema", "Takoradi", "Cape Coast", "Tamale"]

PRODUCT_CATALOG = [
    ("prod_cam_4k", "4K Bullet Camera", 450.0),
    ("prod_dome", "Dome Camera", 320.0),
    ("prod_nvr8", "8-Channel NVR", 1200.0),
    ("prod_lock", "Smart Door Lock", 680.0),
    ("prod_alarm", "Wireless Alarm Kit", 540.0),
    ("prod_cable", "Cat6 Cable (305m)", 250.0),
    ("prod_panel", "Solar Panel 400W", 900.0),
]

PAYMENT_STATUSES = ["paid", "paid", "paid", "completed", "pending", "failed"]

# Reference time for seeded runs, so a seed alone fixes every timestamp
SEEDED_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _sources(seed: Optional[int]):
    rng = random.Random(seed)
    faker = Faker()
    if seed is not None:
        faker.seed_instance(seed)
    return rng, faker


def _reference_time(seed: Optional[int]) -> datetime:
    return SEEDED_EPOCH if seed is not None else datetime.now(timezone.utc)


def generate_technicians(count: int = 12, seed: Optional[int] = None) -> List[Technician]:
    """Generate technicians across levels, areas and workloads."""
    rng, faker = _sources(seed)
    technicians = []

    for i in range(count):
        max_jobs = rng.choice([4, 6, 8, 8, 10])
        rating_count = rng.randint(0, 40)
        technicians.append(
            Technician(
                id=f"tech_{i+1:03d}",
                name=faker.name(),
                level=rng.choice(list(TechnicianLevel)),
                skills=rng.sample(SERVICE_SKILLS, rng.randint(2, 5)),
                service_areas=rng.sample(SERVICE_AREAS, rng.randint(1, 3)),
                availability=rng.choices(
                    list(AvailabilityStatus), weights=[6, 2, 1, 1]
                )[0],
                current_job_ids=[f"job_{i+1:03d}_{n}" for n in range(rng.randint(0, max_jobs - 1))],
                max_jobs_per_day=max_jobs,
                total_jobs_completed=rng.randint(0, 300),
                average_rating=round(rng.uniform(3.0, 5.0), 2) if rating_count else 0.0,
                rating_count=rating_count,
                is_emergency_technician=rng.random() < 0.2,
            )
        )

    return technicians


def generate_teams(technicians: List[Technician], count: int = 3, seed: Optional[int] = None) -> List[Team]:
    """Group technicians into teams led by their most senior member."""
    rng, faker = _sources(seed)
    teams = []

    pool = list(technicians)
    for i in range(count):
        if len(pool) < 2:
            break
        members = rng.sample(pool, min(len(pool), rng.randint(2, 4)))
        for member in members:
            pool.remove(member)

        lead = max(members, key=lambda t: (t.level.rank, t.id))
        teams.append(
            Team(
                id=f"team_{i+1:02d}",
                name=f"{faker.last_name()} Crew",
                lead_technician_id=lead.id,
                members=[
                    TeamMember(
                        technician_id=t.id,
                        name=t.name,
                        level=t.level,
                        role=TeamRole.LEAD if t.id == lead.id else TeamRole.MEMBER,
                    )
                    for t in members
                ],
                service_areas=[rng.choice(SERVICE_AREAS)],
            )
        )

    return teams


def generate_bookings(count: int = 20, seed: Optional[int] = None) -> List[Booking]:
    """Generate pending bookings over the next two weeks."""
    rng, faker = _sources(seed)
    now = _reference_time(seed)
    today = now.date()
    bookings = []

    for i in range(count):
        bookings.append(
            Booking(
                id=f"bk_{i+1:04d}",
                customer_id=f"cust_{rng.randint(1, 50):03d}",
                customer_name=faker.name(),
                service_type=rng.choice(list(ServiceType)),
                complexity=rng.choice(list(ComplexityClass)),
                required_skills=rng.sample(SERVICE_SKILLS, rng.randint(0, 3)),
                priority=rng.choices(list(PriorityLevel), weights=[8, 3, 1])[0],
                preferred_date=today + timedelta(days=rng.randint(0, 14)),
                preferred_time_slot=rng.choice(list(TimeSlot)),
                city=rng.choice(SERVICE_AREAS),
                address=faker.street_address(),
                created_at=now,
                updated_at=now,
            )
        )

    return bookings


def generate_orders(
    count: int = 100,
    days: int = 30,
    start: Optional[datetime] = None,
    seed: Optional[int] = None,
) -> List[Dict]:
    """
    Generate order documents shaped like the storefront's records.

    Returns camelCase dicts (createdAt, totalAmount, paymentStatus, items)
    with a mix of paid and unpaid orders.
    """
    rng, _ = _sources(seed)
    start = start or _reference_time(seed) - timedelta(days=days)
    orders = []

    for i in range(count):
        items = []
        for product_id, name, price in rng.sample(PRODUCT_CATALOG, rng.randint(1, 3)):
            quantity = rng.randint(1, 4)
            items.append({
                "productId": product_id,
                "productName": name,
                "quantity": quantity,
                "subtotal": round(price * quantity, 2),
            })

        orders.append({
            "id": f"order_{i+1:05d}",
            "createdAt": start + timedelta(minutes=rng.randint(0, days * 24 * 60 - 1)),
            "paymentStatus": rng.choice(PAYMENT_STATUSES),
            "totalAmount": round(sum(item["subtotal"] for item in items), 2),
            "items": items,
        })

    return orders


def populate_repository(
    technician_count: int = 12,
    team_count: int = 3,
    booking_count: int = 20,
    seed: Optional[int] = None,
) -> InMemoryDispatchRepository:
    """Build an in-memory repository filled with demo data."""
    technicians = generate_technicians(technician_count, seed)
    teams = generate_teams(technicians, team_count, seed)
    bookings = generate_bookings(booking_count, seed)

    logger.info(
        f"Generated {len(technicians)} technicians, {len(teams)} teams and {len(bookings)} bookings"
    )
    return InMemoryDispatchRepository(technicians=technicians, teams=teams, bookings=bookings)
