"""
Computed engine outputs

Recommendations, settlements and analytics aggregates handed back to
collaborators. All are plain dataclasses with ``to_dict`` for storage.
"""

import enum
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from dispatch_engine.models.domain import Assignee, ServiceType, TechnicianLevel


# ============================================================================
# Dispatch
# ============================================================================

class CandidateKind(str, enum.Enum):
    TECHNICIAN = "technician"
    TEAM = "team"


@dataclass
class Recommendation:
    """A ranked dispatch candidate (single technician or team)"""
    kind: CandidateKind
    technician_id: str  # The technician, or the team lead
    name: str
    level: TechnicianLevel
    match_score: float
    reasons: List[str] = field(default_factory=list)
    matching_skills: List[str] = field(default_factory=list)
    missing_skills: List[str] = field(default_factory=list)
    current_workload: int = 0
    average_rating: float = 0.0
    team_id: Optional[str] = None  # None for single technicians and ad-hoc compositions
    member_ids: List[str] = field(default_factory=list)

    @property
    def has_required_skills(self) -> bool:
        return not self.missing_skills

    def to_assignee(self) -> Assignee:
        """Build the assignee to pass to ``assign_technician``."""
        return Assignee(
            technician_id=self.technician_id,
            name=self.name,
            team_id=self.team_id,
            member_ids=tuple(self.member_ids) or (self.technician_id,),
        )


@dataclass
class Rejection:
    """Why a candidate was removed by the hard filters"""
    candidate_id: str
    reasons: List[str]


@dataclass
class RecommendationResult:
    """
    Ranked candidates plus hard-filter rejections.

    An empty ``candidates`` list is the no-eligible-candidate outcome;
    ``rejections`` explains it.
    """
    booking_id: str
    candidates: List[Recommendation] = field(default_factory=list)
    rejections: List[Rejection] = field(default_factory=list)

    @property
    def has_candidates(self) -> bool:
        return bool(self.candidates)

    @property
    def best(self) -> Optional[Recommendation]:
        return self.candidates[0] if self.candidates else None


# ============================================================================
# Settlement
# ============================================================================

@dataclass(frozen=True)
class Settlement:
    final_cost: float
    platform_commission_rate: float
    platform_commission: float
    technician_payout: float


@dataclass
class CommissionSplit:
    technician_id: str
    technician_name: str
    role: str
    percentage: float
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PricingImpact:
    service_type: ServiceType
    old_price: float
    new_price: float
    change_amount: float
    change_percentage: Optional[float]  # None when the old price was 0
    customer_impact: str
    technician_impact: float
    technician_impact_label: str


@dataclass
class PriceChangeNotification:
    service_type: ServiceType
    old_price: float
    new_price: float
    change_percentage: Optional[float]
    message: str
    created_by: str
    created_at: datetime
    is_active: bool = True


# ============================================================================
# Analytics
# ============================================================================

class AggregationSkip(str, enum.Enum):
    """Data-quality reasons for leaving a record out of totals"""
    NOT_PAID = "not_paid"
    UNRESOLVABLE_DATE = "unresolvable_date"
    MISSING_PRODUCT_ID = "missing_product_id"
    NOT_COMPLETED = "not_completed"


@dataclass
class AggregationReport:
    """Counts of processed and skipped records for one aggregation run"""
    processed: int = 0
    skipped: Counter = field(default_factory=Counter)
    price_fallbacks: int = 0  # Completed bookings counted at their agreed price

    def skip(self, reason: AggregationSkip) -> None:
        self.skipped[reason] += 1

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "price_fallbacks": self.price_fallbacks,
            "skipped": {reason.value: count for reason, count in self.skipped.items()},
        }


@dataclass
class ProductTotals:
    """Running per-product totals inside a bucket (exact decimals)"""
    product_id: str
    product_name: str
    units: Decimal = Decimal(0)
    revenue: Decimal = Decimal(0)


@dataclass
class DailyBucket:
    """Running totals for one UTC date key"""
    revenue: Decimal = Decimal(0)
    orders: int = 0
    products: Dict[str, ProductTotals] = field(default_factory=dict)


@dataclass(frozen=True)
class ProductAggregate:
    product_id: str
    product_name: str
    units: float
    revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DailyAggregate:
    date_key: str
    revenue: float
    orders: int
    top_products: Tuple[ProductAggregate, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_key": self.date_key,
            "revenue": self.revenue,
            "orders": self.orders,
            "top_products": [product.to_dict() for product in self.top_products],
        }


@dataclass(frozen=True)
class AllTimeTopProducts:
    products: Tuple[ProductAggregate, ...]
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [product.to_dict() for product in self.products],
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class RevenueBreakdown:
    """Completed-booking revenue for one completion date"""
    date: str
    bookings: int
    revenue: float
    commission: float
    technician_payout: float


@dataclass
class CommissionDetails:
    """Settlement of one completed booking"""
    booking_id: str
    customer_id: str
    technician_id: Optional[str]
    service_type: ServiceType
    agreed_price: Optional[float]
    final_cost: float
    platform_commission: float
    technician_payout: float
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["service_type"] = self.service_type.value
        data["completed_at"] = self.completed_at.isoformat()
        return data


@dataclass
class RevenueStats:
    """Revenue of one period with growth against the period before it"""
    period: str
    start: datetime
    end: datetime
    revenue: float
    commission: float
    bookings: int
    growth: float  # Percent, rounded to 2 places


@dataclass
class TechnicianEarnings:
    technician_id: str
    total_earnings: float
    jobs_completed: int
    average_job_value: float
    top_service_type: Optional[ServiceType] = None


@dataclass
class DailyEarnings:
    date: str
    earnings: float


@dataclass
class BackfillResult:
    days_written: int = 0
    batches_committed: int = 0
    top_products_written: int = 0
    cancelled: bool = False
    report: AggregationReport = field(default_factory=AggregationReport)
