"""
Domain models for the Service Dispatch & Settlement Engine.
Pydantic records exchanged with collaborators (bookings, technicians,
teams, pricing) and the enums that drive the state machine and matching.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from dispatch_engine.config.settings import settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceType(str, enum.Enum):
    """Bookable service types."""
    INSTALLATION = "installation"
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    INSPECTION = "inspection"


class ComplexityClass(str, enum.Enum):
    """Job complexity; determines minimum level and team size."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT = "expert"


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class PriorityLevel(str, enum.Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class TimeSlot(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class TechnicianLevel(str, enum.Enum):
    """Experience levels, ordered from trainee to supervisor."""
    TRAINEE = "trainee"
    JUNIOR = "junior"
    TECHNICIAN = "technician"
    SENIOR = "senior"
    LEAD = "lead"
    SUPERVISOR = "supervisor"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def at_least(self, other: "TechnicianLevel") -> bool:
        return self.rank >= other.rank


_LEVEL_ORDER: Tuple[TechnicianLevel, ...] = (
    TechnicianLevel.TRAINEE,
    TechnicianLevel.JUNIOR,
    TechnicianLevel.TECHNICIAN,
    TechnicianLevel.SENIOR,
    TechnicianLevel.LEAD,
    TechnicianLevel.SUPERVISOR,
)


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    UNAVAILABLE = "unavailable"
    EMERGENCY = "emergency"  # Available for emergency jobs only


class TeamRole(str, enum.Enum):
    LEAD = "lead"
    MEMBER = "member"


class PartUsage(BaseModel):
    """Part consumed during a job."""
    name: str
    quantity: int = Field(default=1, ge=0)
    cost: float = Field(default=0.0, ge=0)


class StatusChange(BaseModel):
    """One entry of a booking's status history."""
    from_status: Optional[BookingStatus] = None
    to_status: BookingStatus
    actor: str
    at: datetime = Field(default_factory=_utcnow)
    note: Optional[str] = None


class Booking(BaseModel):
    """
    A customer service request tracked through the status lifecycle.

    ``final_cost`` may only be present on completed bookings.
    """
    id: str
    customer_id: str = ""
    customer_name: str = ""

    service_type: ServiceType
    complexity: ComplexityClass = ComplexityClass.MODERATE
    required_skills: List[str] = Field(default_factory=list)
    priority: PriorityLevel = PriorityLevel.NORMAL

    preferred_date: Optional[date] = None
    preferred_time_slot: Optional[TimeSlot] = None

    city: str
    address: str = ""

    status: BookingStatus = BookingStatus.PENDING

    # Assignment
    technician_id: Optional[str] = None
    technician_name: Optional[str] = None
    team_id: Optional[str] = None
    assigned_member_ids: List[str] = Field(default_factory=list)
    assigned_at: Optional[datetime] = None

    # Financials
    agreed_price: Optional[float] = Field(default=None, ge=0)
    final_cost: Optional[float] = Field(default=None, ge=0)
    parts_used: List[PartUsage] = Field(default_factory=list)
    labor_hours: Optional[float] = Field(default=None, ge=0)

    # Completion
    completed_at: Optional[datetime] = None
    service_notes: Optional[str] = None
    customer_rating: Optional[int] = Field(default=None, ge=1, le=5)
    customer_review: Optional[str] = None

    status_history: List[StatusChange] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _final_cost_only_when_completed(self) -> "Booking":
        if self.final_cost is not None and self.status != BookingStatus.COMPLETED:
            raise ValueError("final_cost may only be set on completed bookings")
        return self

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_member_ids)

    @property
    def parts_cost(self) -> float:
        return sum(part.cost * part.quantity for part in self.parts_used)


class Technician(BaseModel):
    """Technician profile with skills, coverage, workload and performance."""
    id: str
    name: str = ""
    level: TechnicianLevel = TechnicianLevel.TECHNICIAN
    skills: List[str] = Field(default_factory=list)
    service_areas: List[str] = Field(default_factory=list)
    availability: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    current_job_ids: List[str] = Field(default_factory=list)
    max_jobs_per_day: int = Field(default_factory=lambda: settings.default_max_jobs_per_day, ge=1)

    total_jobs_completed: int = Field(default=0, ge=0)
    total_jobs_assigned: int = Field(default=0, ge=0)
    average_rating: float = Field(default=0.0, ge=0, le=5)
    rating_count: int = Field(default=0, ge=0)
    is_emergency_technician: bool = False

    @field_validator("current_job_ids")
    @classmethod
    def _dedupe_jobs(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @property
    def workload(self) -> int:
        return len(self.current_job_ids)

    @property
    def at_capacity(self) -> bool:
        return self.workload >= self.max_jobs_per_day

    def covers(self, area: str) -> bool:
        return _normalize_area(area) in {_normalize_area(a) for a in self.service_areas}


class TeamMember(BaseModel):
    technician_id: str
    name: str = ""
    level: TechnicianLevel = TechnicianLevel.TECHNICIAN
    role: TeamRole = TeamRole.MEMBER


class Team(BaseModel):
    """Standing team; skills, areas and workload aggregate over members."""
    id: str
    name: str = ""
    lead_technician_id: str
    members: List[TeamMember] = Field(default_factory=list)
    service_areas: List[str] = Field(default_factory=list)
    is_active: bool = True

    @model_validator(mode="after")
    def _lead_is_member(self) -> "Team":
        if self.lead_technician_id not in self.member_ids:
            raise ValueError(f"Team {self.id}: lead {self.lead_technician_id} is not a member")
        return self

    @property
    def member_ids(self) -> List[str]:
        return [member.technician_id for member in self.members]

    @property
    def size(self) -> int:
        return len(self.members)


class ServicePricing(BaseModel):
    """Price per service type; every service type must be priced."""
    prices: Dict[ServiceType, float]
    last_updated: datetime = Field(default_factory=_utcnow)
    updated_by: str = "system"

    @field_validator("prices")
    @classmethod
    def _complete_and_non_negative(cls, value: Dict[ServiceType, float]) -> Dict[ServiceType, float]:
        missing = [service.value for service in ServiceType if service not in value]
        if missing:
            raise ValueError(f"Pricing is missing service types: {', '.join(missing)}")
        negative = [service.value for service, price in value.items() if price < 0]
        if negative:
            raise ValueError(f"Negative prices for: {', '.join(negative)}")
        return value

    def price_for(self, service_type: ServiceType) -> float:
        return self.prices[ServiceType(service_type)]


@dataclass(frozen=True)
class Assignee:
    """
    Who a booking is assigned to.

    ``member_ids`` lists every technician whose workload the job counts
    against; ``team_id`` is None for single technicians and ad-hoc
    compositions.
    """
    technician_id: str
    name: str = ""
    team_id: Optional[str] = None
    member_ids: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.member_ids:
            object.__setattr__(self, "member_ids", (self.technician_id,))

    @classmethod
    def from_technician(cls, technician: Technician) -> "Assignee":
        return cls(technician_id=technician.id, name=technician.name)

    @classmethod
    def from_team(cls, team: Team) -> "Assignee":
        return cls(
            technician_id=team.lead_technician_id,
            name=team.name,
            team_id=team.id,
            member_ids=tuple(team.member_ids),
        )


def _normalize_area(area: str) -> str:
    return (area or "").strip().casefold()
