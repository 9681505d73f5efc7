"""Checkout-facing routes: availability, new reservations and extensions."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apex_parking.core.config import get_settings
from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.error_codes import ErrorCode
from apex_parking.db.models import STATUS_PENDING
from apex_parking.db.session import get_db
from apex_parking.scheduler.reminder_scheduler import local_now
from apex_parking.schemas.common import APIResponse, ok
from apex_parking.schemas.reservation import (
    AvailabilityResponse,
    CalendarDay,
    CalendarResponse,
    CreateReservationRequest,
    CreateReservationResponse,
    ExtendStayRequest,
    ExtendStayResponse,
)
from apex_parking.services import calendar_state, reservation_service, stripe_client
from apex_parking.services.availability import days_after, is_date_available, spots_remaining
from apex_parking.services.normalizer import (
    BookingParty,
    build_day_rows,
    generate_confirmation_code,
)
from apex_parking.services.notifications import format_long_date

router = APIRouter(prefix="/api", tags=["reservations"])
logger = logging.getLogger(__name__)

SITE_CODE_PREFIX = "APX"
# Stripe caps metadata values at 500 characters.
METADATA_VALUE_LIMIT = 500


def _metadata(**values: str | None) -> dict[str, str]:
    return {
        key: value[:METADATA_VALUE_LIMIT]
        for key, value in values.items()
        if value
    }


@router.get("/check-availability", response_model=APIResponse[AvailabilityResponse])
def check_availability(
    day: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    day = day or local_now(settings).date()
    booked = reservation_service.booked_counts_between(db, day, day).get(day, 0)

    return ok(
        AvailabilityResponse(
            date=day,
            spots_booked=booked,
            spots_available=spots_remaining(booked, settings.max_daily_spots),
            max_spots=settings.max_daily_spots,
            is_available=is_date_available(booked, settings.max_daily_spots),
        )
    )


@router.get("/calendar", response_model=APIResponse[CalendarResponse])
def get_calendar(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    offset: int = Query(default=0, ge=-24, le=24),
    selected: list[date] = Query(default=[]),
    db: Session = Depends(get_db),
):
    """Month grid with availability. A missing year or month falls back to today's."""
    settings = get_settings()
    today = local_now(settings).date()

    state = calendar_state.CalendarState(year=year or today.year, month=month or today.month)
    state = calendar_state.shift_month(state, offset)

    start, end = calendar_state.month_bounds(state)
    booked_counts = reservation_service.booked_counts_between(db, start, end)
    outside = [day for day in selected if not start <= day <= end]
    booked_counts.update(reservation_service.confirmed_counts(db, outside))

    for day in selected:
        state = calendar_state.toggle_date(
            state,
            day,
            booked_counts.get(day, 0),
            settings.max_daily_spots,
            today,
        )

    grid = calendar_state.month_grid(state, booked_counts, settings.max_daily_spots, today)
    return ok(
        CalendarResponse(
            year=state.year,
            month=state.month,
            weeks=[
                [
                    None if cell is None else CalendarDay(
                        date=cell.day,
                        spots_booked=cell.spots_booked,
                        spots_available=cell.spots_available,
                        is_available=cell.is_available,
                        is_past=cell.is_past,
                        is_selected=cell.is_selected,
                        is_selectable=cell.is_selectable,
                    )
                    for cell in week
                ]
                for week in grid
            ],
            selected_dates=state.selected_days,
            total_amount=calendar_state.selection_total(state, settings.daily_rate_cents),
            max_spots=settings.max_daily_spots,
        )
    )


@router.post("/create-reservation", response_model=APIResponse[CreateReservationResponse])
def create_reservation(payload: CreateReservationRequest, db: Session = Depends(get_db)):
    settings = get_settings()
    today = local_now(settings).date()
    if payload.dates[0] < today:
        raise DomainException(
            code=ErrorCode.VALIDATION_ERROR,
            message="Reservations cannot start in the past.",
        )

    # Advisory check before charging; the webhook re-checks at confirmation.
    reservation_service.ensure_capacity(db, payload.dates, settings.max_daily_spots)
    db.rollback()

    confirmation_code = generate_confirmation_code(SITE_CODE_PREFIX)
    customer_name = f"{payload.first_name} {payload.last_name}".strip()

    intent = stripe_client.create_payment_intent(
        amount=payload.total_amount,
        receipt_email=payload.email,
        metadata=_metadata(
            confirmation_code=confirmation_code,
            dates=", ".join(day.isoformat() for day in payload.dates),
            dot_number=payload.dot_number,
            customer_name=customer_name,
            # Enough to rebuild the day-rows if saving them below fails.
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            email=payload.email,
            mc_number=payload.mc_number,
            truck_info=payload.truck_info,
        ),
    )

    party = BookingParty(
        first_name=payload.first_name,
        last_name=payload.last_name.strip(),
        phone=payload.phone,
        email=payload.email or None,
        mc_number=payload.mc_number or None,
        dot_number=payload.dot_number,
        truck_info=payload.truck_info or None,
    )
    drafts = build_day_rows(
        party=party,
        days=payload.dates,
        total_amount=payload.total_amount,
        confirmation_code=confirmation_code,
        status=STATUS_PENDING,
        payment_id=intent.id,
    )

    try:
        reservation_service.insert_rows(db, drafts)
    except SQLAlchemyError:
        # The payment can still complete; the webhook reconciles by payment id.
        logger.exception(
            "Failed to save reservation %s (payment %s)",
            confirmation_code,
            intent.id,
        )

    return ok(
        CreateReservationResponse(
            client_secret=intent.client_secret,
            confirmation_code=confirmation_code,
        )
    )


@router.post("/extend-stay", response_model=APIResponse[ExtendStayResponse])
def extend_stay(payload: ExtendStayRequest, db: Session = Depends(get_db)):
    settings = get_settings()
    latest = reservation_service.latest_confirmed(db, payload.confirmation_code)
    if latest is None:
        raise DomainException(
            code=ErrorCode.RESERVATION_NOT_FOUND,
            message="Reservation not found.",
            status_code=404,
        )

    new_dates = days_after(latest.parking_date, payload.additional_days)
    reservation_service.ensure_capacity(db, new_dates, settings.max_daily_spots)
    db.rollback()

    intent = stripe_client.create_payment_intent(
        amount=payload.amount,
        receipt_email=latest.email,
        metadata=_metadata(
            type="extension",
            confirmation_code=payload.confirmation_code,
            original_confirmation=payload.confirmation_code,
            new_dates=", ".join(day.isoformat() for day in new_dates),
            first_name=latest.first_name,
            last_name=latest.last_name,
            phone=payload.phone or latest.phone,
            dot_number=latest.dot_number,
        ),
    )

    party = BookingParty(
        first_name=latest.first_name,
        last_name=latest.last_name,
        phone=payload.phone or latest.phone,
        email=latest.email,
        mc_number=latest.mc_number,
        dot_number=latest.dot_number,
        truck_info=latest.truck_info,
    )
    drafts = build_day_rows(
        party=party,
        days=new_dates,
        total_amount=payload.amount,
        confirmation_code=payload.confirmation_code,
        status=STATUS_PENDING,
        payment_id=intent.id,
    )

    try:
        reservation_service.insert_rows(db, drafts)
    except SQLAlchemyError:
        logger.exception(
            "Failed to save extension for %s (payment %s)",
            payload.confirmation_code,
            intent.id,
        )

    return ok(
        ExtendStayResponse(
            client_secret=intent.client_secret,
            confirmation_code=payload.confirmation_code,
            new_dates=new_dates,
            new_checkout=format_long_date(new_dates[-1]),
        )
    )
