"""
Tests for the analytics backfill job
"""

from datetime import datetime, timedelta, timezone
from threading import Event

import pytest

from dispatch_engine.analytics import run_backfill
from dispatch_engine.config.constants import MAX_BATCH_SIZE
from dispatch_engine.infra import InMemoryAggregateStore


def _orders(days, per_day=2):
    start = datetime(2023, 1, 1, 12, tzinfo=timezone.utc)
    orders = []
    for day in range(days):
        for n in range(per_day):
            orders.append({
                "createdAt": start + timedelta(days=day),
                "paymentStatus": "paid",
                "totalAmount": 50.0,
                "items": [{"productId": f"p{n}", "productName": f"Product {n}", "quantity": 1, "subtotal": 50.0}],
            })
    return orders


@pytest.fixture
def sink():
    return InMemoryAggregateStore()


def test_writes_days_in_bounded_batches(sink, event_bus, published):
    result = run_backfill(_orders(450), sink, batch_size=400, event_bus=event_bus)

    assert result.days_written == 450
    assert result.batches_committed == 2
    assert sink.batches_written == 2
    assert result.top_products_written == 2
    assert not result.cancelled

    first = sink.get_daily("2023-01-01")
    assert first.revenue == 100.0
    assert first.orders == 2
    assert len(sink.list_daily()) == 450
    assert [p.product_id for p in sink.get_all_time().products] == ["p0", "p1"]

    event = published[-1]
    assert event.event == "aggregate_finalized"
    assert event.subject_id == "2023-01-01..2024-03-25"
    assert event.payload["days_written"] == 450


def test_rerun_converges_to_same_state(sink):
    orders = _orders(30)
    run_backfill(orders, sink, batch_size=7)
    first = sink.list_daily()

    run_backfill(orders, sink, batch_size=7)
    assert sink.list_daily() == first


def test_cancel_stops_between_batches():
    cancel = Event()

    class CancelAfterFirstBatch(InMemoryAggregateStore):
        def write_daily(self, records):
            super().write_daily(records)
            cancel.set()

    sink = CancelAfterFirstBatch()
    result = run_backfill(_orders(25), sink, batch_size=10, cancel_event=cancel)

    assert result.cancelled
    assert result.batches_committed == 1
    assert result.days_written == 10
    assert sink.get_all_time() is None


def test_empty_history_writes_nothing(sink):
    result = run_backfill([], sink)

    assert result.days_written == 0
    assert sink.get_all_time() is None


def test_batch_size_is_capped():
    with pytest.raises(ValueError, match=str(MAX_BATCH_SIZE)):
        run_backfill(_orders(1), InMemoryAggregateStore(), batch_size=MAX_BATCH_SIZE + 1)
    assert MAX_BATCH_SIZE == 500


def test_report_counts_skips(sink):
    orders = _orders(3) + [{"paymentStatus": "pending", "createdAt": "2023-01-01"}]
    result = run_backfill(orders, sink)

    assert result.report.processed == 6
    assert result.report.total_skipped == 1
