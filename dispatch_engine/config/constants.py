"""
Engine constants

Default tables shared by dispatch, settlement and analytics.
"""

from typing import Dict, FrozenSet

from dispatch_engine.models.domain import (
    ComplexityClass,
    ServiceType,
    TechnicianLevel,
)

# ============================================================================
# Dispatch
# ============================================================================

MIN_LEVEL_FOR_COMPLEXITY: Dict[ComplexityClass, TechnicianLevel] = {
    ComplexityClass.SIMPLE: TechnicianLevel.JUNIOR,
    ComplexityClass.MODERATE: TechnicianLevel.TECHNICIAN,
    ComplexityClass.COMPLEX: TechnicianLevel.SENIOR,
    ComplexityClass.EXPERT: TechnicianLevel.LEAD,
}

TEAM_SIZE_FOR_COMPLEXITY: Dict[ComplexityClass, int] = {
    ComplexityClass.SIMPLE: 1,
    ComplexityClass.MODERATE: 1,
    ComplexityClass.COMPLEX: 2,
    ComplexityClass.EXPERT: 3,
}


# ============================================================================
# Settlement
# ============================================================================

DEFAULT_SERVICE_PRICING: Dict[ServiceType, float] = {
    ServiceType.INSTALLATION: 500.0,
    ServiceType.MAINTENANCE: 150.0,
    ServiceType.REPAIR: 200.0,
    ServiceType.INSPECTION: 100.0,
}

DEFAULT_PRICING_UPDATED_BY = "system"

DEFAULT_ROLE_COMMISSION_RATES: Dict[str, float] = {
    "lead": 0.40,
    "senior": 0.30,
    "technician": 0.25,
    "junior": 0.20,
    "trainee": 0.10,
}

# Weight for roles missing from the rate table
FALLBACK_ROLE_COMMISSION_RATE = 0.25

CURRENCY_EPSILON = 0.01


# ============================================================================
# Analytics
# ============================================================================

PAID_PAYMENT_STATUSES: FrozenSet[str] = frozenset({"paid", "completed"})

TOP_PRODUCTS_DOC_ID = "all-time"

# Document stores cap a single batched write at 500 operations
MAX_BATCH_SIZE = 500

UNKNOWN_PRODUCT_NAME = "Unknown Product"
