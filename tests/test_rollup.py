"""
Tests for order roll-ups and date resolution
"""

import random
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dispatch_engine.analytics import (
    aggregate_daily_orders,
    compute_top_products_all_time,
    finalize_daily_aggregates,
    resolve_date,
    upsert_daily_map,
)
from dispatch_engine.models import AggregationReport, AggregationSkip
from dispatch_engine.services.mock_data import generate_orders


def _order(amount, created_at="2024-01-05T09:00:00Z", status="paid", items=None):
    return {
        "createdAt": created_at,
        "totalAmount": amount,
        "paymentStatus": status,
        "items": items or [],
    }


def _item(product_id, quantity, subtotal, name=None):
    item = {"productId": product_id, "quantity": quantity, "subtotal": subtotal}
    if name:
        item["productName"] = name
    return item


class TestResolveDate:
    def test_iso_string_with_z(self):
        assert resolve_date("2024-01-05T23:30:00Z") == datetime(2024, 1, 5, 23, 30, tzinfo=timezone.utc)

    def test_offset_string_converted_to_utc(self):
        assert resolve_date("2024-01-05T01:00:00+02:00").day == 4

    def test_epoch_milliseconds(self):
        assert resolve_date(1704412800000) == datetime(2024, 1, 5, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        assert resolve_date(datetime(2024, 1, 5, 12)).tzinfo == timezone.utc

    def test_plain_date(self):
        assert resolve_date(date(2024, 1, 5)) == datetime(2024, 1, 5, tzinfo=timezone.utc)

    def test_timestamp_like_object(self):
        class StoreTimestamp:
            def to_datetime(self):
                return datetime(2024, 1, 5, 8, tzinfo=timezone.utc)

        assert resolve_date(StoreTimestamp()).hour == 8

    @pytest.mark.parametrize("value", [None, "", "not a date", True, object()])
    def test_unresolvable(self, value):
        assert resolve_date(value) is None


class TestAggregateDaily:
    def test_example_day(self):
        orders = [_order(100), _order(150), _order(200.0, created_at="2024-01-05T22:59:59Z")]
        daily = finalize_daily_aggregates(aggregate_daily_orders(orders))

        assert len(daily) == 1
        assert daily[0].date_key == "2024-01-05"
        assert daily[0].revenue == 450.0
        assert daily[0].orders == 3

    def test_skips_are_reported(self):
        orders = [
            _order(100),
            _order(50, status="pending"),
            _order(70, status=None),
            _order(80, created_at="garbage"),
            _order(90, items=[_item(None, 1, 90.0), _item("p1", 1, 0.0)]),
        ]
        report = AggregationReport()
        daily = aggregate_daily_orders(orders, report)

        assert daily["2024-01-05"].orders == 2
        assert daily["2024-01-05"].revenue == Decimal("190")
        assert report.processed == 2
        assert report.skipped[AggregationSkip.NOT_PAID] == 2
        assert report.skipped[AggregationSkip.UNRESOLVABLE_DATE] == 1
        assert report.skipped[AggregationSkip.MISSING_PRODUCT_ID] == 1
        assert report.to_dict()["skipped"]["not_paid"] == 2

    def test_completed_payment_counts_as_paid(self):
        daily = aggregate_daily_orders([_order(10, status="completed")])
        assert daily["2024-01-05"].orders == 1

    def test_utc_day_boundary(self):
        orders = [_order(1, created_at="2024-01-05T23:59:59Z"), _order(1, created_at="2024-01-06T00:00:00Z")]
        assert sorted(aggregate_daily_orders(orders)) == ["2024-01-05", "2024-01-06"]

    def test_snake_case_records(self):
        order = {
            "created_at": datetime(2024, 1, 5, tzinfo=timezone.utc),
            "total_amount": 25,
            "payment_status": "paid",
            "items": [{"product_id": "p1", "product_name": "Camera", "quantity": 1, "subtotal": 25}],
        }
        product = aggregate_daily_orders([order])["2024-01-05"].products["p1"]
        assert (product.product_name, product.units, product.revenue) == ("Camera", 1, Decimal("25"))

    def test_order_independent(self):
        orders = generate_orders(200, days=10, seed=3)
        shuffled = list(orders)
        random.Random(11).shuffle(shuffled)

        assert finalize_daily_aggregates(aggregate_daily_orders(orders), 5) == finalize_daily_aggregates(
            aggregate_daily_orders(shuffled), 5
        )

    def test_float_amounts_sum_exactly(self):
        orders = [_order(0.1), _order(0.2), _order(0.3)]
        assert finalize_daily_aggregates(aggregate_daily_orders(orders))[0].revenue == 0.6


class TestTopProducts:
    def test_ranking_units_then_revenue_then_id(self):
        orders = [
            _order(0, items=[_item("b", 2, 20.0, "Bee"), _item("a", 2, 20.0, "Ay"), _item("c", 2, 30.0), _item("d", 5, 1.0)]),
        ]
        top = finalize_daily_aggregates(aggregate_daily_orders(orders), top_n=3)[0].top_products

        assert [p.product_id for p in top] == ["d", "c", "a"]
        assert top[1].product_name == "Unknown Product"

    def test_finalize_is_idempotent(self):
        buckets = aggregate_daily_orders(generate_orders(50, seed=5))
        assert finalize_daily_aggregates(buckets) == finalize_daily_aggregates(buckets)

    def test_days_sorted_ascending(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        orders = [_order(1, created_at=start + timedelta(days=d)) for d in (3, 1, 2)]
        keys = [d.date_key for d in finalize_daily_aggregates(aggregate_daily_orders(orders))]
        assert keys == ["2024-03-02", "2024-03-03", "2024-03-04"]

    def test_all_time_ignores_unpaid(self):
        orders = [
            _order(0, items=[_item("a", 1, 10.0)]),
            _order(0, status="failed", items=[_item("b", 9, 90.0)]),
            _order(0, created_at=None, items=[_item("a", 2, 20.0)]),
        ]
        top = compute_top_products_all_time(orders, limit=10)

        assert [(p.product_id, p.units, p.revenue) for p in top] == [("a", 3, 30.0)]

    def test_fractional_quantities_are_kept(self):
        orders = [
            _order(0, items=[_item("cable", 1.5, 15.0, "Cable")]),
            _order(0, items=[_item("cable", "0.25", 2.5, "Cable"), _item("lock", 1, 100.0, "Lock")]),
        ]

        (day,) = finalize_daily_aggregates(aggregate_daily_orders(orders))
        assert [(p.product_id, p.units) for p in day.top_products] == [("cable", 1.75), ("lock", 1.0)]

        top = compute_top_products_all_time(orders, limit=10)
        assert top[0].units == 1.75
        assert top[0].revenue == 17.5


class TestUpsert:
    def test_merge_does_not_mutate_inputs(self):
        base = aggregate_daily_orders([_order(100, items=[_item("p1", 1, 100.0)])])
        extra = aggregate_daily_orders([_order(50, items=[_item("p1", 2, 50.0)])])

        merged = upsert_daily_map(base, extra)

        assert merged["2024-01-05"].revenue == Decimal("150")
        assert merged["2024-01-05"].products["p1"].units == 3
        assert base["2024-01-05"].revenue == Decimal("100")
        assert extra["2024-01-05"].products["p1"].units == 2

    def test_merge_is_associative_and_commutative(self):
        a, b, c = (
            aggregate_daily_orders(generate_orders(40, days=5, start=datetime(2024, 1, 1, tzinfo=timezone.utc), seed=s))
            for s in (1, 2, 3)
        )

        left = finalize_daily_aggregates(upsert_daily_map(upsert_daily_map(a, b), c))
        right = finalize_daily_aggregates(upsert_daily_map(a, upsert_daily_map(b, c)))
        swapped = finalize_daily_aggregates(upsert_daily_map(upsert_daily_map(c, a), b))

        assert left == right == swapped

    def test_merge_matches_single_pass(self):
        orders = generate_orders(60, seed=9)
        merged = upsert_daily_map(aggregate_daily_orders(orders[:30]), aggregate_daily_orders(orders[30:]))

        assert finalize_daily_aggregates(merged) == finalize_daily_aggregates(aggregate_daily_orders(orders))
