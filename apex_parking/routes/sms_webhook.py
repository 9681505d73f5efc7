import logging

from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apex_parking.core.config import get_settings
from apex_parking.db.session import get_db
from apex_parking.services import partner_bookings
from apex_parking.services.booking_parser import parse_partner_message
from apex_parking.services.twilio_client import phones_match

router = APIRouter(prefix="/api", tags=["twilio"])
logger = logging.getLogger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def _twiml_ack() -> Response:
    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.post("/incoming-sms")
def incoming_sms(
    From: str = Form(default=""),
    To: str = Form(default=""),
    Body: str = Form(default=""),
    db: Session = Depends(get_db),
):
    """Twilio inbound SMS hook. Only the partner's notification number is acted on."""
    settings = get_settings()
    logger.info("Incoming SMS from %s to %s", From, To)

    if not phones_match(From, settings.partner_sms_number):
        logger.info("Ignoring SMS from non-partner number %s", From)
        return _twiml_ack()

    parsed = parse_partner_message(Body)
    if parsed is None:
        logger.warning("Could not parse partner SMS: %r", Body[:200])
        return _twiml_ack()

    try:
        result = partner_bookings.ingest_parsed(db, parsed, settings)
    except SQLAlchemyError:
        # Twilio does not retry on errors; the booking has to be entered by hand.
        logger.exception("Failed to save partner booking %s", parsed.confirmation_code)
        return _twiml_ack()

    if result.created:
        logger.info(
            "Partner booking %s stored for %s",
            result.confirmation_code,
            ", ".join(day.isoformat() for day in result.days),
        )
    return _twiml_ack()
