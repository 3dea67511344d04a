from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Rental(Base):
    __tablename__ = "rentals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    outfit_id: Mapped[str] = mapped_column(String(64), index=True)
    curator_id: Mapped[str] = mapped_column(String(64), index=True)
    renter_user_id: Mapped[str] = mapped_column(String(64), index=True)
    renter_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    renter_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    nights: Mapped[int] = mapped_column(Integer)

    # requested / paid / accepted / ... / completed / cancelled / disputed
    status: Mapped[str] = mapped_column(String(32), index=True)
    timeline: Mapped[list] = mapped_column(JSON, default=list)
    annotations: Mapped[list] = mapped_column(JSON, default=list)

    pricing: Mapped[dict] = mapped_column(JSON)
    curator_earnings: Mapped[float] = mapped_column(Float, default=0)

    delivery_qc: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    return_qc: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # deadline of the QC window currently pending, for the expiry sweep
    qc_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    issue_report: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    payment_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    tracking: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    return_tracking: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


Index("ix_rentals_qc_deadline", Rental.qc_deadline)


class Outfit(Base):
    __tablename__ = "outfits"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    curator_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(255))
    per_night_price: Mapped[float] = mapped_column(Float)
    availability_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(16), default="active")  # active / archived
    rentals_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BlockedDate(Base):
    """One unavailable day of an outfit; rental_id is NULL for curator blocks."""

    __tablename__ = "outfit_blocked_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    outfit_id: Mapped[str] = mapped_column(String(64), index=True)
    day: Mapped[date] = mapped_column(Date)
    rental_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("outfit_id", "day", "rental_id", name="uq_outfit_day_rental"),
    )


class Closet(Base):
    __tablename__ = "closets"

    curator_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), default="Curator")
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    outfits_count: Mapped[int] = mapped_column(Integer, default=0)
    rentals_count: Mapped[int] = mapped_column(Integer, default=0)
    total_earnings: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
