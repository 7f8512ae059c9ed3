"""
Tests for completed-booking revenue summaries, period stats and technician earnings
"""

from datetime import datetime, timezone

import pytest

from conftest import make_booking
from dispatch_engine.analytics import (
    RevenuePeriod,
    commission_breakdown,
    daily_earnings,
    period_bounds,
    revenue_stats,
    summarize_booking_revenue,
    technician_earnings,
    total_revenue,
)
from dispatch_engine.config import CommissionRates
from dispatch_engine.models import AggregationReport, AggregationSkip, BookingStatus, ServiceType


def _at(month, day, hour=15):
    return datetime(2024, month, day, hour, tzinfo=timezone.utc)


def _completed(booking_id, cost, day, month=1, hour=15, **overrides):
    return make_booking(
        booking_id,
        status=BookingStatus.COMPLETED,
        final_cost=cost,
        completed_at=_at(month, day, hour),
        **overrides,
    )


def test_example_day_settles_to_commission_and_payout():
    bookings = [_completed("b1", 100.0, 5), _completed("b2", 150.0, 5), _completed("b3", 200.0, 5)]
    (day,) = summarize_booking_revenue(bookings, 0.10)

    assert day.date == "2024-01-05"
    assert day.bookings == 3
    assert day.revenue == 450.0
    assert day.commission == 45.0
    assert day.technician_payout == 405.0


def test_open_bookings_are_skipped():
    report = AggregationReport()
    bookings = [_completed("b1", 80.0, 6), make_booking("b2"), make_booking("b3", status=BookingStatus.CANCELLED)]

    breakdown = summarize_booking_revenue(bookings, 0.10, report)

    assert [d.date for d in breakdown] == ["2024-01-06"]
    assert report.skipped[AggregationSkip.NOT_COMPLETED] == 2


def test_total_row():
    bookings = [_completed("b1", 99.99, 5), _completed("b2", 0.01, 7)]
    total = total_revenue(summarize_booking_revenue(bookings, 0.15))

    assert total.bookings == 2
    assert total.revenue == 100.0
    assert round(total.commission + total.technician_payout, 2) == 100.0


def test_date_range_bounds_are_inclusive():
    bookings = [_completed("b1", 10.0, 4), _completed("b2", 20.0, 5), _completed("b3", 30.0, 6), _completed("b4", 40.0, 7)]

    breakdown = summarize_booking_revenue(bookings, 0.10, start=_at(1, 5), end=_at(1, 6))

    assert [(d.date, d.revenue) for d in breakdown] == [("2024-01-05", 20.0), ("2024-01-06", 30.0)]


def test_agreed_price_used_without_final_cost():
    report = AggregationReport()
    booking = make_booking("b1", status=BookingStatus.COMPLETED, agreed_price=200.0, completed_at=_at(1, 5))

    (day,) = summarize_booking_revenue([booking], 0.10, report)

    assert (day.revenue, day.commission, day.technician_payout) == (200.0, 20.0, 180.0)
    assert report.price_fallbacks == 1
    assert report.to_dict()["price_fallbacks"] == 1


def test_injected_commission_rates():
    (day,) = summarize_booking_revenue(
        [_completed("b1", 250.0, 5)], commission_rates=CommissionRates(platform_commission_rate=0.2)
    )
    assert (day.commission, day.technician_payout) == (50.0, 200.0)


def test_commission_breakdown_latest_first():
    bookings = [
        _completed("b1", 100.0, 5),
        _completed("b2", 250.0, 7, technician_id="tech_mid", agreed_price=240.0),
        make_booking("b3"),
    ]

    details = commission_breakdown(bookings, 0.10)

    assert [d.booking_id for d in details] == ["b2", "b1"]
    assert (details[0].platform_commission, details[0].technician_payout) == (25.0, 225.0)
    assert details[0].agreed_price == 240.0
    assert details[0].to_dict()["service_type"] == "installation"
    assert details[0].to_dict()["completed_at"] == "2024-01-07T15:00:00+00:00"


class TestRevenueStats:
    @pytest.mark.parametrize(
        "period,now,expected",
        [
            (RevenuePeriod.TODAY, _at(1, 10, 9), (_at(1, 10, 0), _at(1, 9, 0))),
            # 2024-01-10 is a Wednesday; weeks start on Sunday
            (RevenuePeriod.WEEK, _at(1, 10, 9), (_at(1, 7, 0), datetime(2023, 12, 31, tzinfo=timezone.utc))),
            (RevenuePeriod.MONTH, _at(1, 15), (_at(1, 1, 0), datetime(2023, 12, 1, tzinfo=timezone.utc))),
            (RevenuePeriod.MONTH, _at(3, 15), (_at(3, 1, 0), _at(2, 1, 0))),
            (RevenuePeriod.YEAR, _at(3, 15), (_at(1, 1, 0), datetime(2023, 1, 1, tzinfo=timezone.utc))),
        ],
    )
    def test_period_bounds(self, period, now, expected):
        assert period_bounds(period, now) == expected

    def test_growth_against_previous_month(self):
        bookings = [
            _completed("b1", 300.0, 2, month=3),
            _completed("b2", 200.0, 15, month=3, hour=10),
            _completed("b3", 999.0, 15, month=3, hour=13),  # After "now"
            _completed("b4", 400.0, 10, month=2),
            _completed("b5", 50.0, 10, month=1),
        ]

        stats = revenue_stats(bookings, RevenuePeriod.MONTH, now=_at(3, 15, 12), platform_commission_rate=0.10)

        assert (stats.revenue, stats.commission, stats.bookings) == (500.0, 50.0, 2)
        assert stats.growth == 25.0
        assert stats.period == "month"
        assert stats.start == _at(3, 1, 0)

    def test_growth_without_previous_revenue(self):
        bookings = [_completed("b1", 80.0, 15, month=3, hour=8)]

        assert revenue_stats(bookings, "today", now=_at(3, 15, 12)).growth == 100.0
        assert revenue_stats([], "today", now=_at(3, 15, 12)).growth == 0.0

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            revenue_stats([], "decade", now=_at(3, 15))


class TestTechnicianEarnings:
    def test_summary_for_assigned_technician(self):
        bookings = [
            _completed("b1", 100.0, 5, technician_id="tech_mid"),
            _completed("b2", 200.0, 6, technician_id="tech_mid", service_type=ServiceType.REPAIR),
            _completed("b3", 50.0, 7, technician_id="tech_mid", service_type=ServiceType.REPAIR),
            _completed("b4", 1000.0, 7, technician_id="tech_lead"),
            make_booking("b5", technician_id="tech_mid"),
        ]

        earnings = technician_earnings(bookings, "tech_mid", platform_commission_rate=0.10)

        assert earnings.total_earnings == 315.0
        assert earnings.jobs_completed == 3
        assert earnings.average_job_value == 105.0
        assert earnings.top_service_type == ServiceType.REPAIR

        bounded = technician_earnings(bookings, "tech_mid", start=_at(1, 6), platform_commission_rate=0.10)
        assert (bounded.total_earnings, bounded.jobs_completed) == (225.0, 2)

    def test_no_jobs(self):
        earnings = technician_earnings([], "tech_mid")

        assert (earnings.total_earnings, earnings.jobs_completed, earnings.average_job_value) == (0.0, 0, 0.0)
        assert earnings.top_service_type is None

    def test_daily_earnings_fill_empty_days(self):
        bookings = [
            _completed("b1", 100.0, 5, technician_id="tech_mid"),
            _completed("b2", 50.0, 7, technician_id="tech_mid"),
            _completed("b3", 70.0, 4, technician_id="tech_mid"),
            _completed("b4", 70.0, 6, technician_id="tech_lead"),
        ]

        days = daily_earnings(bookings, "tech_mid", days=3, now=_at(1, 7, 18), platform_commission_rate=0.10)

        assert [(d.date, d.earnings) for d in days] == [
            ("2024-01-05", 90.0),
            ("2024-01-06", 0.0),
            ("2024-01-07", 45.0),
        ]

    def test_daily_earnings_needs_a_day(self):
        with pytest.raises(ValueError):
            daily_earnings([], "tech_mid", days=0)
