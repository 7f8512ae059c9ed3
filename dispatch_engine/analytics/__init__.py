"""
Revenue Aggregator - order roll-ups, booking revenue and backfill
"""

from dispatch_engine.analytics.rollup import (
    aggregate_daily_orders,
    compute_top_products_all_time,
    finalize_daily_aggregates,
    is_paid_status,
    upsert_daily_map,
)
from dispatch_engine.analytics.revenue import (
    RevenuePeriod,
    commission_breakdown,
    daily_earnings,
    period_bounds,
    revenue_stats,
    summarize_booking_revenue,
    technician_earnings,
    total_revenue,
)
from dispatch_engine.analytics.backfill import run_backfill
from dispatch_engine.utils.dates import resolve_date

__all__ = [
    "aggregate_daily_orders",
    "compute_top_products_all_time",
    "finalize_daily_aggregates",
    "is_paid_status",
    "upsert_daily_map",
    "summarize_booking_revenue",
    "total_revenue",
    "RevenuePeriod",
    "commission_breakdown",
    "daily_earnings",
    "period_bounds",
    "revenue_stats",
    "technician_earnings",
    "run_backfill",
    "resolve_date",
]
