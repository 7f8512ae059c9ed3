"""
Revenue Aggregator - order roll-ups

Pure functions that turn raw paid orders into per-day revenue, order
counts and top products. Orders are loosely typed collaborator records
(mappings or objects); fields are read by snake_case name with the
camelCase document-store name as a fallback.

Records that cannot be counted are skipped and tallied in an
AggregationReport, never raised.
"""

from copy import deepcopy
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from dispatch_engine.config.constants import PAID_PAYMENT_STATUSES, UNKNOWN_PRODUCT_NAME
from dispatch_engine.config.settings import settings
from dispatch_engine.models.results import (
    AggregationReport,
    AggregationSkip,
    DailyAggregate,
    DailyBucket,
    ProductAggregate,
    ProductTotals,
)
from dispatch_engine.utils.dates import resolve_date, to_date_key
from dispatch_engine.utils.money import to_decimal

_CENT = Decimal("0.01")

DailyMap = Dict[str, DailyBucket]


def read_field(record: Any, name: str, default: Any = None) -> Any:
    """
    Read ``name`` from a mapping or object, falling back to its camelCase form.

    Example:
        >>> read_field({"paymentStatus": "paid"}, "payment_status")
        'paid'
    """
    for key in (name, _camel(name)):
        if isinstance(record, Mapping):
            if key in record:
                return record[key]
        elif hasattr(record, key):
            return getattr(record, key)
    return default


def is_paid_status(status: Any) -> bool:
    return isinstance(status, str) and status in PAID_PAYMENT_STATUSES


def aggregate_daily_orders(
    orders: Iterable[Any],
    report: Optional[AggregationReport] = None,
) -> DailyMap:
    """
    Bucket paid orders by UTC creation date.

    Each bucket holds revenue (order totals), order count and per-product
    units and revenue (item subtotals). Amounts and quantities are summed
    as Decimal so the result does not depend on input order; fractional
    quantities are kept.

    Args:
        orders: Order records with created_at, total_amount, payment_status, items
        report: Optional report collecting processed/skipped counts

    Returns:
        Dict mapping ``YYYY-MM-DD`` to DailyBucket
    """
    report = report if report is not None else AggregationReport()
    daily: DailyMap = {}

    for order in orders:
        if not is_paid_status(read_field(order, "payment_status")):
            report.skip(AggregationSkip.NOT_PAID)
            continue

        created_at = resolve_date(read_field(order, "created_at"))
        if created_at is None:
            report.skip(AggregationSkip.UNRESOLVABLE_DATE)
            logger.debug(f"Skipping order {read_field(order, 'id', '?')}: unresolvable created_at")
            continue

        bucket = daily.setdefault(to_date_key(created_at), DailyBucket())
        bucket.orders += 1
        bucket.revenue += to_decimal(read_field(order, "total_amount"))
        _add_items(bucket.products, read_field(order, "items"), report)
        report.processed += 1

    if report.total_skipped:
        logger.info(f"Aggregated {report.processed} orders into {len(daily)} days ({report.total_skipped} skipped)")
    return daily


def finalize_daily_aggregates(daily: Mapping[str, DailyBucket], top_n: Optional[int] = None) -> List[DailyAggregate]:
    """
    Turn buckets into output records.

    Top products per day are ranked by units desc, revenue desc, product
    id; days are returned in ascending date order.
    """
    limit = settings.daily_top_products_limit if top_n is None else top_n
    return [
        DailyAggregate(
            date_key=date_key,
            revenue=_money(bucket.revenue),
            orders=bucket.orders,
            top_products=tuple(rank_products(bucket.products.values(), limit)),
        )
        for date_key, bucket in sorted(daily.items())
    ]


def compute_top_products_all_time(
    orders: Iterable[Any],
    limit: Optional[int] = None,
    report: Optional[AggregationReport] = None,
) -> List[ProductAggregate]:
    """Rank products over every paid order, same ordering as the daily lists."""
    limit = settings.backfill_top_products_limit if limit is None else limit
    report = report if report is not None else AggregationReport()
    products: Dict[str, ProductTotals] = {}

    for order in orders:
        if not is_paid_status(read_field(order, "payment_status")):
            continue
        _add_items(products, read_field(order, "items"), report)

    return rank_products(products.values(), limit)


def upsert_daily_map(base: Mapping[str, DailyBucket], additional: Mapping[str, DailyBucket]) -> DailyMap:
    """
    Merge two daily maps into a new one; neither input is modified.

    Associative and commutative: merging in any grouping or order gives
    the same totals.
    """
    merged: DailyMap = {key: deepcopy(bucket) for key, bucket in base.items()}

    for date_key, bucket in additional.items():
        if date_key not in merged:
            merged[date_key] = deepcopy(bucket)
            continue

        existing = merged[date_key]
        existing.revenue += bucket.revenue
        existing.orders += bucket.orders
        for product_id, totals in bucket.products.items():
            current = existing.products.get(product_id)
            if current is None:
                existing.products[product_id] = deepcopy(totals)
            else:
                current.product_name = _pick_name(current.product_name, totals.product_name)
                current.units += totals.units
                current.revenue += totals.revenue

    return merged


def rank_products(products: Iterable[ProductTotals], limit: int) -> List[ProductAggregate]:
    ranked = sorted(products, key=lambda p: (-p.units, -p.revenue, p.product_id))
    return [
        ProductAggregate(
            product_id=p.product_id,
            product_name=p.product_name,
            units=float(p.units),
            revenue=_money(p.revenue),
        )
        for p in ranked[:limit]
    ]


def _add_items(products: Dict[str, ProductTotals], items: Any, report: AggregationReport) -> None:
    if not isinstance(items, (list, tuple)):
        return

    for item in items:
        product_id = read_field(item, "product_id")
        if not product_id:
            report.skip(AggregationSkip.MISSING_PRODUCT_ID)
            continue

        product_id = str(product_id)
        name = read_field(item, "product_name") or UNKNOWN_PRODUCT_NAME
        totals = products.get(product_id)
        if totals is None:
            totals = ProductTotals(product_id=product_id, product_name=name)
            products[product_id] = totals
        else:
            totals.product_name = _pick_name(totals.product_name, name)

        totals.units += to_decimal(read_field(item, "quantity"))
        totals.revenue += to_decimal(read_field(item, "subtotal"))


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _pick_name(current: str, candidate: str) -> str:
    # Known names win over the placeholder; otherwise the smallest name wins
    if current == UNKNOWN_PRODUCT_NAME:
        return candidate
    if candidate == UNKNOWN_PRODUCT_NAME:
        return current
    return min(current, candidate)
