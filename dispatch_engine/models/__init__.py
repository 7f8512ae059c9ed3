"""
Domain records and computed results
"""

from dispatch_engine.models.domain import (
    Assignee,
    AvailabilityStatus,
    Booking,
    BookingStatus,
    ComplexityClass,
    PartUsage,
    PriorityLevel,
    ServicePricing,
    ServiceType,
    StatusChange,
    Team,
    TeamMember,
    TeamRole,
    Technician,
    TechnicianLevel,
    TimeSlot,
)
from dispatch_engine.models.results import (
    AggregationReport,
    AggregationSkip,
    AllTimeTopProducts,
    BackfillResult,
    CandidateKind,
    CommissionSplit,
    CommissionDetails,
    DailyAggregate,
    DailyBucket,
    DailyEarnings,
    PriceChangeNotification,
    PricingImpact,
    ProductAggregate,
    Recommendation,
    RecommendationResult,
    Rejection,
    RevenueBreakdown,
    RevenueStats,
    Settlement,
    TechnicianEarnings,
)

__all__ = [
    "Assignee",
    "AvailabilityStatus",
    "Booking",
    "BookingStatus",
    "ComplexityClass",
    "PartUsage",
    "PriorityLevel",
    "ServicePricing",
    "ServiceType",
    "StatusChange",
    "Team",
    "TeamMember",
    "TeamRole",
    "Technician",
    "TechnicianLevel",
    "TimeSlot",
    "AggregationReport",
    "AggregationSkip",
    "AllTimeTopProducts",
    "BackfillResult",
    "CandidateKind",
    "CommissionSplit",
    "CommissionDetails",
    "DailyAggregate",
    "DailyBucket",
    "DailyEarnings",
    "PriceChangeNotification",
    "PricingImpact",
    "ProductAggregate",
    "Recommendation",
    "RecommendationResult",
    "Rejection",
    "RevenueBreakdown",
    "RevenueStats",
    "Settlement",
    "TechnicianEarnings",
]
