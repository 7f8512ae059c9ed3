"""
SQLAlchemy ORM tables for the SQL storage adapters.

Records are stored whole as JSON payloads; the columns next to the
payload are the ones queried or compared (status for compare-and-set,
availability and date keys for filtering).
"""

from datetime import date as date_type
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from dispatch_engine.utils.dates import utc_now


class Base(DeclarativeBase):
    """Base class for all tables."""
    pass


class BookingRow(Base):
    """Booking record; ``status`` mirrors the payload and guards updates."""
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    technician_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<Booking {self.id} ({self.status})>"


class TechnicianRow(Base):
    __tablename__ = "technicians"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    availability: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<Technician {self.id} ({self.availability})>"


class TeamRow(Base):
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class DailyAggregateRow(Base):
    """One day of order analytics, keyed by ``YYYY-MM-DD``."""
    __tablename__ = "analytics_daily"

    date_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    revenue: Mapped[float] = mapped_column(Float, nullable=False)
    orders: Mapped[int] = mapped_column(Integer, nullable=False)
    top_products: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class TopProductsRow(Base):
    __tablename__ = "analytics_top_products"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    products: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class ServicePricingRow(Base):
    __tablename__ = "service_pricing"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    prices: Mapped[Dict[str, float]] = mapped_column(JSON, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(100), nullable=False)
