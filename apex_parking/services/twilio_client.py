"""Twilio client configuration for SMS messaging."""

import logging

import phonenumbers
from twilio.rest import Client

from apex_parking.core.config import get_settings

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_client() -> Client | None:
    global _client
    if _client is None:
        settings = get_settings()
        if not settings.twilio_account_sid or not settings.twilio_auth_token:
            logger.warning("Twilio credentials not set. SMS messaging will fail at runtime.")
            return None
        _client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
    return _client


def normalize_phone(raw: str, default_region: str = "US") -> str:
    """Return `raw` in E.164 format. Raises ValueError when it is not a dialable number."""
    candidate = (raw or "").strip()
    try:
        parsed = phonenumbers.parse(candidate, None if candidate.startswith("+") else default_region)
    except phonenumbers.NumberParseException as exc:
        raise ValueError(f"Invalid phone number: {raw!r}") from exc

    if not phonenumbers.is_possible_number(parsed):
        raise ValueError(f"Invalid phone number: {raw!r}")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def phones_match(first: str, second: str) -> bool:
    """Compare two numbers by their trailing ten digits."""
    first_digits = "".join(ch for ch in first or "" if ch.isdigit())
    second_digits = "".join(ch for ch in second or "" if ch.isdigit())
    if not first_digits or not second_digits:
        return False
    return first_digits[-10:] == second_digits[-10:]


def send_sms(to: str, body: str) -> str:
    """Send an SMS via Twilio and return the message SID."""
    client = get_client()
    if client is None:
        raise RuntimeError("Twilio client is not configured.")

    sender = get_settings().twilio_phone_number
    if not sender:
        raise RuntimeError("TWILIO_PHONE_NUMBER is not configured.")

    message = client.messages.create(
        from_=sender,
        to=normalize_phone(to),
        body=body,
    )

    logger.info("SMS sent to %s (SID: %s)", to, message.sid)
    return message.sid


def send_sms_safely(to: str, body: str) -> str | None:
    """Send an SMS, logging instead of raising on failure."""
    try:
        return send_sms(to=to, body=body)
    except Exception:
        logger.exception("Failed to send SMS to %s", to)
        return None
