"""Partner bookings forwarded from the inbox by an email-parsing automation."""

import logging

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from apex_parking.core.auth import check_bearer
from apex_parking.core.config import Settings, get_settings
from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.error_codes import ErrorCode
from apex_parking.db.session import get_db
from apex_parking.schemas.reservation import EmailBookingPayload, EmailBookingResponse
from apex_parking.services import partner_bookings, twilio_client
from apex_parking.services.booking_parser import parse_partner_message
from apex_parking.services.normalizer import BookingParty, party_from_parsed, split_full_name
from apex_parking.services.notifications import (
    MessageKind,
    format_date_list,
    params_for,
    render_message,
)

router = APIRouter(prefix="/api", tags=["webhooks"])
logger = logging.getLogger(__name__)

STRUCTURED_REQUIRED = ("customer_name", "phone", "check_in")


def _missing_field(name: str) -> DomainException:
    return DomainException(
        code=ErrorCode.VALIDATION_ERROR,
        message=f"Missing required field: {name}",
    )


def _ingest_text(db: Session, payload: EmailBookingPayload, settings: Settings):
    parsed = parse_partner_message(payload.text)
    if parsed is None:
        logger.warning("Could not parse forwarded booking email")
        raise DomainException(
            code=ErrorCode.VALIDATION_ERROR,
            message="Could not read booking dates from email text.",
        )

    party = party_from_parsed(parsed)
    if payload.customer_name and payload.phone:
        first_name, last_name = split_full_name(payload.customer_name)
        party = partner_bookings.with_contact(
            party,
            first_name=first_name,
            last_name=last_name,
            phone=payload.phone,
            email=payload.email,
        )
    return partner_bookings.ingest_parsed(db, parsed, settings, party=party)


def _ingest_fields(db: Session, payload: EmailBookingPayload, settings: Settings):
    for name in STRUCTURED_REQUIRED:
        value = getattr(payload, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _missing_field(name)

    first_name, last_name = split_full_name(payload.customer_name)
    party = BookingParty(
        first_name=first_name,
        last_name=last_name,
        phone=payload.phone.strip(),
        email=payload.email or None,
        mc_number=payload.mc_number or None,
        dot_number=payload.dot_number or partner_bookings.DEFAULT_PARTNER_DOT,
        truck_info=payload.vehicle_type or partner_bookings.DEFAULT_PARTNER_VEHICLE,
    )
    return partner_bookings.ingest_structured(
        db,
        party=party,
        check_in=payload.check_in,
        check_out=payload.check_out,
        nights=payload.nights,
        amount_paid=payload.amount_paid,
        confirmation_code=payload.confirmation_number,
        settings=settings,
    )


@router.post("/email-booking", response_model=EmailBookingResponse)
def email_booking(
    payload: EmailBookingPayload,
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    check_bearer(authorization, settings.email_webhook_secret)
    logger.info("Email booking received from %s", payload.source or "unknown source")

    if payload.text and payload.text.strip():
        result = _ingest_text(db, payload, settings)
    else:
        result = _ingest_fields(db, payload, settings)

    if not result.created:
        return EmailBookingResponse(
            success=True,
            message="Booking already exists",
            confirmation_code=result.confirmation_code,
        )

    customer = payload.customer_name or None
    if result.overbooked_days:
        return EmailBookingResponse(
            success=False,
            message="Lot is full on " + ", ".join(day.isoformat() for day in result.overbooked_days),
            confirmation_code=result.confirmation_code,
            dates=result.days,
            customer=customer,
        )

    if payload.phone:
        first_name, _ = split_full_name(payload.customer_name)
        body = render_message(
            MessageKind.PARTNER_BOOKING_CONFIRMED,
            params_for(
                settings,
                name=first_name,
                date_list=format_date_list(result.days),
                confirmation_code=result.confirmation_code,
            ),
        )
        twilio_client.send_sms_safely(to=payload.phone, body=body)

    return EmailBookingResponse(
        success=True,
        message="Booking created",
        confirmation_code=result.confirmation_code,
        dates=result.days,
        customer=customer,
    )
