"""
Commission & Payout Calculator and service pricing
"""

from dispatch_engine.settlement.commission import (
    PayoutMember,
    pricing_impact,
    settle,
    settle_booking,
    split_for_team,
    split_team_payout,
)
from dispatch_engine.settlement.pricing import PricingService, default_pricing, price_change_message

__all__ = [
    "PayoutMember",
    "pricing_impact",
    "settle",
    "settle_booking",
    "split_for_team",
    "split_team_payout",
    "PricingService",
    "default_pricing",
    "price_change_message",
]
