"""
Configuration layer - Settings and constants
"""

from dispatch_engine.config.settings import (
    settings,
    Settings,
    ScoringWeights,
    CommissionRates,
    PROJECT_ROOT,
)

__all__ = [
    "settings",
    "Settings",
    "ScoringWeights",
    "CommissionRates",
    "PROJECT_ROOT",
]
