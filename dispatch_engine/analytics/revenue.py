"""
Revenue Aggregator - completed-booking revenue

Groups completed bookings by completion date with the platform
commission and technician payout for each day, and derives per-booking
commission details, period statistics and technician earnings from the
same settlements.

A completed booking is counted at its final cost, or at its agreed price
when no final cost was recorded.
"""

import enum
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from loguru import logger

from dispatch_engine.config.settings import CommissionRates
from dispatch_engine.models.domain import Booking, BookingStatus
from dispatch_engine.models.results import (
    AggregationReport,
    AggregationSkip,
    CommissionDetails,
    DailyEarnings,
    RevenueBreakdown,
    RevenueStats,
    Settlement,
    TechnicianEarnings,
)
from dispatch_engine.settlement.commission import settle
from dispatch_engine.utils.dates import resolve_date, to_date_key, utc_now
from dispatch_engine.utils.money import round_currency, to_decimal


class RevenuePeriod(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"  # Starts on Sunday
    MONTH = "month"
    YEAR = "year"


def summarize_booking_revenue(
    bookings: Iterable[Booking],
    platform_commission_rate: Optional[float] = None,
    report: Optional[AggregationReport] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> List[RevenueBreakdown]:
    """
    Per-day revenue of completed bookings.

    Each booking is settled on its own so that, per day, commission plus
    payout equals revenue exactly.

    Args:
        bookings: Bookings in any status; only completed ones count
        platform_commission_rate: Overrides ``commission_rates``
        report: Optional report collecting processed/skipped counts
        start: Earliest completion time included (inclusive)
        end: Latest completion time included (inclusive)
        commission_rates: Injected rate configuration; defaults to the configured rates

    Returns:
        RevenueBreakdown per completion date, ascending
    """
    totals: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    counts: Dict[str, int] = defaultdict(int)

    settled = _settled_bookings(bookings, platform_commission_rate, commission_rates, report, start, end)
    for _, completed_at, settlement in settled:
        date_key = to_date_key(completed_at)
        day = totals[date_key]
        day["revenue"] += to_decimal(settlement.final_cost)
        day["commission"] += to_decimal(settlement.platform_commission)
        day["payout"] += to_decimal(settlement.technician_payout)
        counts[date_key] += 1

    return [
        RevenueBreakdown(
            date=date_key,
            bookings=counts[date_key],
            revenue=float(day["revenue"]),
            commission=float(day["commission"]),
            technician_payout=float(day["payout"]),
        )
        for date_key, day in sorted(totals.items())
    ]


def total_revenue(breakdown: Iterable[RevenueBreakdown]) -> RevenueBreakdown:
    """Collapse a per-day breakdown into a single total row (date ``"all"``)."""
    rows = list(breakdown)
    return RevenueBreakdown(
        date="all",
        bookings=sum(row.bookings for row in rows),
        revenue=float(sum((to_decimal(row.revenue) for row in rows), Decimal(0))),
        commission=float(sum((to_decimal(row.commission) for row in rows), Decimal(0))),
        technician_payout=float(sum((to_decimal(row.technician_payout) for row in rows), Decimal(0))),
    )


def commission_breakdown(
    bookings: Iterable[Booking],
    platform_commission_rate: Optional[float] = None,
    report: Optional[AggregationReport] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> List[CommissionDetails]:
    """Settlement details per completed booking, most recently completed first."""
    details = [
        CommissionDetails(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            technician_id=booking.technician_id,
            service_type=booking.service_type,
            agreed_price=booking.agreed_price,
            final_cost=settlement.final_cost,
            platform_commission=settlement.platform_commission,
            technician_payout=settlement.technician_payout,
            completed_at=completed_at,
        )
        for booking, completed_at, settlement in _settled_bookings(
            bookings, platform_commission_rate, commission_rates, report
        )
    ]
    details.sort(key=lambda d: (d.completed_at, d.booking_id), reverse=True)
    return details


def period_bounds(period: RevenuePeriod, now: datetime) -> Tuple[datetime, datetime]:
    """
    Start of the current period and start of the previous one (UTC).

    Example:
        MONTH at 2024-03-15 10:00 gives (2024-03-01 00:00, 2024-02-01 00:00)
    """
    period = RevenuePeriod(period)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == RevenuePeriod.TODAY:
        return midnight, midnight - timedelta(days=1)
    if period == RevenuePeriod.WEEK:
        start = midnight - timedelta(days=(now.weekday() + 1) % 7)
        return start, start - timedelta(days=7)
    if period == RevenuePeriod.MONTH:
        start = midnight.replace(day=1)
        if start.month == 1:
            return start, start.replace(year=start.year - 1, month=12)
        return start, start.replace(month=start.month - 1)
    start = midnight.replace(month=1, day=1)
    return start, start.replace(year=start.year - 1)


def revenue_stats(
    bookings: Iterable[Booking],
    period: RevenuePeriod,
    now: Optional[datetime] = None,
    platform_commission_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> RevenueStats:
    """
    Revenue, commission and bookings for the current period to date.

    Growth compares revenue against the whole previous period: the
    percentage change when the previous period earned anything, otherwise
    100 when the current period earned something and 0 when neither did.

    Raises:
        ValueError: unknown period
    """
    now = resolve_date(now) if now is not None else utc_now()
    start, previous_start = period_bounds(period, now)
    bookings = list(bookings)

    current = total_revenue(
        summarize_booking_revenue(
            bookings, platform_commission_rate, start=start, end=now, commission_rates=commission_rates
        )
    )
    previous = total_revenue(
        summarize_booking_revenue(
            bookings,
            platform_commission_rate,
            start=previous_start,
            end=start - timedelta(microseconds=1),
            commission_rates=commission_rates,
        )
    )

    if previous.revenue > 0:
        growth = (current.revenue - previous.revenue) / previous.revenue * 100
    else:
        growth = 100.0 if current.revenue > 0 else 0.0

    return RevenueStats(
        period=RevenuePeriod(period).value,
        start=start,
        end=now,
        revenue=current.revenue,
        commission=current.commission,
        bookings=current.bookings,
        growth=round(growth, 2),
    )


def technician_earnings(
    bookings: Iterable[Booking],
    technician_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    platform_commission_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> TechnicianEarnings:
    """
    Payout earned by the assigned technician (team lead for team jobs).

    The most frequent service type wins ``top_service_type``; ties go to
    the alphabetically first one.
    """
    earned = Decimal(0)
    jobs = 0
    service_counts: Counter = Counter()

    own = (b for b in bookings if b.technician_id == technician_id)
    for booking, _, settlement in _settled_bookings(own, platform_commission_rate, commission_rates, None, start, end):
        earned += to_decimal(settlement.technician_payout)
        jobs += 1
        service_counts[booking.service_type] += 1

    top_service = None
    if service_counts:
        top_service = min(service_counts, key=lambda s: (-service_counts[s], s.value))

    return TechnicianEarnings(
        technician_id=technician_id,
        total_earnings=float(earned),
        jobs_completed=jobs,
        average_job_value=round_currency(float(earned) / jobs) if jobs else 0.0,
        top_service_type=top_service,
    )


def daily_earnings(
    bookings: Iterable[Booking],
    technician_id: str,
    days: int = 7,
    now: Optional[datetime] = None,
    platform_commission_rate: Optional[float] = None,
    commission_rates: Optional[CommissionRates] = None,
) -> List[DailyEarnings]:
    """Earnings per UTC day for the last ``days`` days (today included), oldest first."""
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")

    now = resolve_date(now) if now is not None else utc_now()
    first_day = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days - 1)
    by_day = {
        row.date: row.technician_payout
        for row in summarize_booking_revenue(
            (b for b in bookings if b.technician_id == technician_id),
            platform_commission_rate,
            start=first_day,
            end=now,
            commission_rates=commission_rates,
        )
    }

    keys = [to_date_key(first_day + timedelta(days=offset)) for offset in range(days)]
    return [DailyEarnings(date=key, earnings=by_day.get(key, 0.0)) for key in keys]


def _settled_bookings(
    bookings: Iterable[Booking],
    platform_commission_rate: Optional[float],
    commission_rates: Optional[CommissionRates],
    report: Optional[AggregationReport],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Iterator[Tuple[Booking, datetime, Settlement]]:
    """Completed bookings inside the bounds with their settlement."""
    report = report if report is not None else AggregationReport()
    start = resolve_date(start) if start is not None else None
    end = resolve_date(end) if end is not None else None

    for booking in bookings:
        amount = booking.final_cost if booking.final_cost is not None else booking.agreed_price
        if booking.status != BookingStatus.COMPLETED or amount is None:
            report.skip(AggregationSkip.NOT_COMPLETED)
            continue

        completed_at = resolve_date(booking.completed_at)
        if completed_at is None:
            report.skip(AggregationSkip.UNRESOLVABLE_DATE)
            logger.debug(f"Skipping booking {booking.id}: no completion date")
            continue

        if (start is not None and completed_at < start) or (end is not None and completed_at > end):
            continue

        if booking.final_cost is None:
            report.price_fallbacks += 1
            logger.debug(f"Booking {booking.id} has no final cost, counting agreed price {amount:.2f}")

        report.processed += 1
        yield booking, completed_at, settle(amount, platform_commission_rate, commission_rates)
