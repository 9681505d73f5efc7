"""Ingest Truck Parking Club bookings delivered by SMS or forwarded email."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from apex_parking.core.config import Settings
from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.error_codes import ErrorCode
from apex_parking.db.models import PARTNER_PAYMENT_PREFIX, STATUS_CONFIRMED, STATUS_FAILED
from apex_parking.services import reservation_service
from apex_parking.services.availability import MAX_STAY_DAYS, days_for_stay, find_full_days
from apex_parking.services.booking_parser import (
    MAX_VEHICLES_PER_BOOKING,
    PARTNER_CODE_PREFIX,
    ParsedBooking,
)
from apex_parking.services.normalizer import (
    BookingParty,
    build_day_rows,
    generate_confirmation_code,
    party_from_parsed,
)

logger = logging.getLogger(__name__)

DEFAULT_PARTNER_DOT = "TPC-BOOKING"
DEFAULT_PARTNER_VEHICLE = "Truck Parking Club Booking"


@dataclass
class IngestResult:
    confirmation_code: str
    created: bool
    days: list[date] = field(default_factory=list)
    overbooked_days: list[date] = field(default_factory=list)


def dollars_to_cents(amount: Decimal | int | float | str) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _ingest(
    db: Session,
    party: BookingParty,
    days: list[date],
    confirmation_code: str,
    total_amount: int,
    payment_id: str | None,
    settings: Settings,
    spots_per_day: int = 1,
) -> IngestResult:
    result = IngestResult(confirmation_code=confirmation_code, created=False, days=days)
    if len(days) > MAX_STAY_DAYS:
        raise DomainException(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"A booking can cover at most {MAX_STAY_DAYS} days.",
        )
    if not 1 <= spots_per_day <= MAX_VEHICLES_PER_BOOKING:
        raise DomainException(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"A booking can hold 1 to {MAX_VEHICLES_PER_BOOKING} vehicles.",
        )
    if reservation_service.confirmation_exists(db, confirmation_code):
        logger.info("Booking already exists: %s", confirmation_code)
        return result

    # Sold upstream, so a booking that does not fit is kept for follow-up as failed.
    requested = {day: spots_per_day for day in days}
    booked = reservation_service.confirmed_counts(db, days, lock=True)
    result.overbooked_days = find_full_days(requested, booked, settings.max_daily_spots)
    status = STATUS_FAILED if result.overbooked_days else STATUS_CONFIRMED

    drafts = build_day_rows(
        party=party,
        days=days,
        total_amount=total_amount,
        confirmation_code=confirmation_code,
        status=status,
        payment_id=payment_id,
        spots_per_day=spots_per_day,
    )
    reservation_service.insert_rows(db, drafts)
    result.created = True

    if result.overbooked_days:
        logger.error(
            "Partner booking %s overbooks %s; stored as failed.",
            confirmation_code,
            ", ".join(day.isoformat() for day in result.overbooked_days),
        )
    else:
        logger.info("Added %d day(s) for partner booking %s", len(days), confirmation_code)
    return result


def ingest_parsed(
    db: Session,
    parsed: ParsedBooking,
    settings: Settings,
    party: BookingParty | None = None,
) -> IngestResult:
    """Store a booking read from partner message text.

    Without an explicit `party` the member number stands in for the contact.
    """
    days = days_for_stay(parsed.check_in, parsed.check_out)
    spots = parsed.vehicle_count
    total = settings.daily_rate_cents * len(days) * spots
    return _ingest(
        db,
        party=party or party_from_parsed(parsed),
        days=days,
        confirmation_code=parsed.confirmation_code,
        total_amount=total,
        payment_id=f"{PARTNER_PAYMENT_PREFIX}{parsed.confirmation_code}",
        settings=settings,
        spots_per_day=spots,
    )


def ingest_structured(
    db: Session,
    party: BookingParty,
    check_in: date,
    check_out: date | None,
    nights: int | None,
    amount_paid: Decimal | None,
    confirmation_code: str | None,
    settings: Settings,
) -> IngestResult:
    """Store a booking an email parser already split into fields."""
    if check_out is None:
        check_out = check_in + timedelta(days=nights or 1)
    days = days_for_stay(check_in, check_out)

    if amount_paid is None:
        total = settings.daily_rate_cents * len(days)
    else:
        total = dollars_to_cents(amount_paid)

    return _ingest(
        db,
        party=party,
        days=days,
        confirmation_code=confirmation_code or generate_confirmation_code(PARTNER_CODE_PREFIX),
        total_amount=total,
        payment_id=None,
        settings=settings,
    )


def with_contact(party: BookingParty, first_name: str, last_name: str, phone: str, email: str | None) -> BookingParty:
    return replace(party, first_name=first_name, last_name=last_name, phone=phone, email=email)
