"""
Shared utilities - logging, errors, money and date helpers
"""

from dispatch_engine.utils.logger import setup_logger
from dispatch_engine.utils.money import round_currency, to_decimal, format_signed_amount
from dispatch_engine.utils.dates import resolve_date, to_date_key, utc_now

__all__ = [
    "setup_logger",
    "round_currency",
    "to_decimal",
    "format_signed_amount",
    "resolve_date",
    "to_date_key",
    "utc_now",
]
