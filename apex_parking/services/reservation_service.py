"""Reservation storage operations."""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import date

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.error_codes import ErrorCode
from apex_parking.db.models import (
    STATUS_CONFIRMED,
    STATUS_FAILED,
    STATUS_PENDING,
    ParkingDay,
    Reservation,
)
from apex_parking.services.availability import find_full_days
from apex_parking.services.normalizer import ReservationDraft

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_FAILED},
    STATUS_CONFIRMED: set(),
    STATUS_FAILED: set(),
}


@dataclass
class ConfirmationOutcome:
    payment_id: str
    rows: list[Reservation] = field(default_factory=list)
    overbooked_days: list[date] = field(default_factory=list)


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def confirmation_exists(db: Session, confirmation_code: str) -> bool:
    return db.scalar(
        select(Reservation.id)
        .where(Reservation.confirmation_code == confirmation_code)
        .limit(1)
    ) is not None


def day_lock_query(days: Iterable[date]):
    """SELECT ... FOR UPDATE over the per-day lock rows, in date order."""
    return (
        select(ParkingDay.parking_date)
        .where(ParkingDay.parking_date.in_(sorted(set(days))))
        .order_by(ParkingDay.parking_date.asc())
        .with_for_update()
    )


def _ensure_day_rows(db: Session, days: list[date]) -> None:
    values = [{"parking_date": day} for day in days]
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(postgresql_insert(ParkingDay).values(values).on_conflict_do_nothing())
    elif dialect == "sqlite":
        db.execute(sqlite_insert(ParkingDay).values(values).on_conflict_do_nothing())
    elif dialect in ("mysql", "mariadb"):
        db.execute(insert(ParkingDay).values(values).prefix_with("IGNORE"))
    else:
        existing = set(db.scalars(select(ParkingDay.parking_date).where(ParkingDay.parking_date.in_(days))))
        missing = [day for day in days if day not in existing]
        if missing:
            db.execute(insert(ParkingDay).values([{"parking_date": day} for day in missing]))


def lock_days(db: Session, days: Iterable[date]) -> None:
    """Lock one row per day until the transaction ends.

    Every capacity check takes these locks first, so two transactions booking the
    same day count and write one after the other.
    """
    days = sorted(set(days))
    if not days:
        return
    _ensure_day_rows(db, days)
    db.execute(day_lock_query(days)).all()


def confirmed_counts(
    db: Session,
    days: Iterable[date],
    exclude_payment_id: str | None = None,
    lock: bool = False,
) -> dict[date, int]:
    """Confirmed rows per day. With `lock`, the days stay locked until commit."""
    days = list(set(days))
    if not days:
        return {}
    if lock:
        lock_days(db, days)

    query = (
        select(Reservation.id, Reservation.parking_date)
        .where(Reservation.parking_date.in_(days))
        .where(Reservation.status == STATUS_CONFIRMED)
    )
    if exclude_payment_id is not None:
        query = query.where(
            (Reservation.stripe_payment_id.is_(None))
            | (Reservation.stripe_payment_id != exclude_payment_id)
        )

    return dict(Counter(row.parking_date for row in db.execute(query)))


def booked_counts_between(db: Session, start: date, end: date) -> dict[date, int]:
    """Confirmed rows per day for start..end inclusive."""
    rows = db.execute(
        select(Reservation.parking_date, func.count(Reservation.id))
        .where(Reservation.parking_date >= start)
        .where(Reservation.parking_date <= end)
        .where(Reservation.status == STATUS_CONFIRMED)
        .group_by(Reservation.parking_date)
    ).all()
    return {parking_date: int(count) for parking_date, count in rows}


def ensure_capacity(db: Session, days: Iterable[date], max_spots: int) -> None:
    """Raise CAPACITY_EXCEEDED when the requested day-rows do not fit."""
    requested = Counter(days)
    booked = confirmed_counts(db, requested, lock=True)
    full_days = find_full_days(dict(requested), booked, max_spots)
    if full_days:
        raise DomainException(
            code=ErrorCode.CAPACITY_EXCEEDED,
            message="No spots left on: " + ", ".join(day.isoformat() for day in full_days),
            status_code=409,
        )


def insert_rows(db: Session, drafts: list[ReservationDraft]) -> list[Reservation]:
    """Persist day-rows in one transaction."""
    try:
        rows = [Reservation(**asdict(draft)) for draft in drafts]
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Inserted %d day-row(s) for %s",
        len(rows),
        drafts[0].confirmation_code if drafts else "-",
    )
    return rows


def rows_for_payment(db: Session, payment_id: str) -> list[Reservation]:
    return list(
        db.scalars(
            select(Reservation)
            .where(Reservation.stripe_payment_id == payment_id)
            .order_by(Reservation.parking_date.asc(), Reservation.id.asc())
        )
    )


def latest_confirmed(db: Session, confirmation_code: str) -> Reservation | None:
    return db.scalar(
        select(Reservation)
        .where(Reservation.confirmation_code == confirmation_code)
        .where(Reservation.status == STATUS_CONFIRMED)
        .order_by(Reservation.parking_date.desc(), Reservation.id.desc())
        .limit(1)
    )


def _set_status(db: Session, row_ids: list[int], new_status: str) -> None:
    db.execute(
        update(Reservation)
        .where(Reservation.id.in_(row_ids))
        .where(Reservation.status == STATUS_PENDING)
        .values(status=new_status)
    )


def confirm_payment(db: Session, payment_id: str, max_spots: int) -> ConfirmationOutcome:
    """Move a payment's pending rows to confirmed, or to failed if that would overbook.

    Rows that already left `pending` are untouched, so webhook retries are no-ops.
    """
    outcome = ConfirmationOutcome(payment_id=payment_id)
    try:
        days = {row.parking_date for row in rows_for_payment(db, payment_id)}
        if not days:
            return outcome
        lock_days(db, days)

        # Re-read under the day locks; a concurrent delivery may have moved the rows.
        db.expire_all()
        pending = [
            row for row in rows_for_payment(db, payment_id)
            if can_transition(row.status, STATUS_CONFIRMED)
        ]
        if not pending:
            db.commit()
            return outcome

        requested = Counter(row.parking_date for row in pending)
        booked = confirmed_counts(db, requested, exclude_payment_id=payment_id)
        outcome.overbooked_days = find_full_days(dict(requested), booked, max_spots)

        new_status = STATUS_FAILED if outcome.overbooked_days else STATUS_CONFIRMED
        _set_status(db, [row.id for row in pending], new_status)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    for row in pending:
        db.refresh(row)
    outcome.rows = pending
    return outcome


def fail_payment(db: Session, payment_id: str) -> int:
    """Mark a payment's pending rows failed. Returns the number of rows changed."""
    try:
        result = db.execute(
            update(Reservation)
            .where(Reservation.stripe_payment_id == payment_id)
            .where(Reservation.status == STATUS_PENDING)
            .values(status=STATUS_FAILED)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return result.rowcount or 0
