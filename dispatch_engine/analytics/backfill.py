"""
Analytics backfill

Rebuilds the stored daily aggregates and the all-time top products record
from the full order history. Writes are full-value upserts keyed by date,
so re-running a backfill converges to the same stored state.
"""

import time
from datetime import datetime
from threading import Event
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from dispatch_engine.analytics.rollup import (
    aggregate_daily_orders,
    compute_top_products_all_time,
    finalize_daily_aggregates,
)
from dispatch_engine.config.constants import MAX_BATCH_SIZE
from dispatch_engine.config.settings import settings
from dispatch_engine.events import EngineEvent, EventBus
from dispatch_engine.infra.ports import AggregateSink
from dispatch_engine.models.results import AllTimeTopProducts, BackfillResult
from dispatch_engine.utils.dates import utc_now


def run_backfill(
    orders: Iterable[Any],
    sink: AggregateSink,
    batch_size: Optional[int] = None,
    top_n: Optional[int] = None,
    all_time_limit: Optional[int] = None,
    cancel_event: Optional[Event] = None,
    event_bus: Optional[EventBus] = None,
    clock: Callable[[], datetime] = utc_now,
) -> BackfillResult:
    """
    Aggregate every paid order and write the results to ``sink``.

    Steps:
    1. Bucket orders by day and finalize per-day top products
    2. Write daily records in batches of at most ``batch_size``
    3. Write the all-time top products record

    The cancel event is checked before each batch; a cancelled run keeps
    the batches already committed and skips the all-time record.

    Args:
        orders: Full order history
        sink: Destination for the records
        batch_size: Records per batch (default 400)
        top_n: Top products kept per day (default 10)
        all_time_limit: Products kept in the all-time record (default 25)
        cancel_event: Optional threading.Event to stop between batches
        event_bus: Receives ``aggregate_finalized`` when the run completes

    Returns:
        BackfillResult with counts and the aggregation report
    """
    batch_size = settings.aggregate_batch_size if batch_size is None else batch_size
    top_n = settings.backfill_top_products_limit if top_n is None else top_n
    all_time_limit = settings.all_time_top_products_limit if all_time_limit is None else all_time_limit
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")

    started = time.perf_counter()
    orders = list(orders)
    result = BackfillResult()

    if not orders:
        logger.warning("No orders found, nothing to backfill")
        return result

    logger.info(f"Backfilling analytics from {len(orders)} orders")
    daily = finalize_daily_aggregates(aggregate_daily_orders(orders, result.report), top_n)
    top_products = compute_top_products_all_time(orders, all_time_limit)

    for start in range(0, len(daily), batch_size):
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            logger.warning(
                f"Backfill cancelled after {result.batches_committed} batch(es), {result.days_written} day(s) written"
            )
            return result

        batch = daily[start:start + batch_size]
        sink.write_daily(batch)
        result.batches_committed += 1
        result.days_written += len(batch)
        logger.debug(f"Committed batch {result.batches_committed} ({len(batch)} days)")

    sink.write_all_time(AllTimeTopProducts(products=tuple(top_products), generated_at=clock()))
    result.top_products_written = len(top_products)

    elapsed = time.perf_counter() - started
    logger.success(
        f"Backfilled {result.days_written} daily records and {result.top_products_written} "
        f"all-time top products in {elapsed:.2f}s"
    )

    if event_bus is not None:
        event_bus.publish(
            EngineEvent(
                event="aggregate_finalized",
                subject_id=f"{daily[0].date_key}..{daily[-1].date_key}" if daily else None,
                payload={
                    "days_written": result.days_written,
                    "batches": result.batches_committed,
                    "top_products": result.top_products_written,
                    "skipped": result.report.to_dict()["skipped"],
                },
            )
        )
    return result
