"""
Service Dispatch & Settlement Engine

Booking lifecycle, technician dispatch, commission settlement and
revenue analytics for a field-service platform.
"""

from dispatch_engine.booking import BookingLifecycleManager
from dispatch_engine.dispatch import DispatchRecommender
from dispatch_engine.events import EngineEvent, EventBus
from dispatch_engine.settlement import PricingService, pricing_impact, settle, settle_booking, split_team_payout
from dispatch_engine.technicians import TechnicianDirectory

__version__ = "0.1.0"

__all__ = [
    "BookingLifecycleManager",
    "DispatchRecommender",
    "EngineEvent",
    "EventBus",
    "PricingService",
    "pricing_impact",
    "settle",
    "settle_booking",
    "split_team_payout",
    "TechnicianDirectory",
]
