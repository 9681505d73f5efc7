"""SQLAlchemy ORM models."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from apex_parking.db.session import Base

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_FAILED = "failed"

PARTNER_PAYMENT_PREFIX = "TPC_"


class Reservation(Base):
    """One occupied parking day. Rows of one booking share a confirmation code."""

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_date_status", "parking_date", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    confirmation_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        server_default=text("''"),
    )
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mc_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dot_number: Mapped[str] = mapped_column(String(64), nullable=False)
    truck_info: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    parking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    parking_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="daily",
        server_default=text("'daily'"),
    )

    # Minor currency units (cents).
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=STATUS_PENDING,
        server_default=text("'pending'"),
    )

    stripe_payment_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    expiration_reminder_sent: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    followup_sent: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class ParkingDay(Base):
    """One row per calendar day that has been capacity-checked.

    Capacity checks lock these rows, so concurrent bookings for a day run one at a time.
    """

    __tablename__ = "parking_days"

    parking_date: Mapped[date] = mapped_column(Date, primary_key=True)
