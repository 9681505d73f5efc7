"""Stripe webhook: confirm or fail reservations once the payment settles."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from stripe import SignatureVerificationError

from apex_parking.core.config import Settings, get_settings
from apex_parking.db.models import STATUS_FAILED, STATUS_PENDING
from apex_parking.db.session import get_db
from apex_parking.services import reservation_service, stripe_client, twilio_client
from apex_parking.services.normalizer import BookingParty, build_day_rows
from apex_parking.services.notifications import (
    MessageKind,
    format_date_list,
    format_long_date,
    params_for,
    render_message,
)

router = APIRouter(prefix="/api", tags=["webhooks"])
logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


async def _read_limited_body(request: Request) -> bytes | None:
    """Return the raw body, or None once it exceeds the webhook size cap."""
    content_length = request.headers.get("Content-Length")
    if content_length and content_length.isdigit():
        if int(content_length) > stripe_client.MAX_WEBHOOK_PAYLOAD_BYTES:
            return None

    total_size = 0
    chunks = []
    async for chunk in request.stream():
        total_size += len(chunk)
        if total_size > stripe_client.MAX_WEBHOOK_PAYLOAD_BYTES:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def _rebuild_from_metadata(db: Session, payment_id: str, intent: dict) -> bool:
    """Recreate day-rows from payment metadata when checkout failed to save them."""
    metadata = intent.get("metadata") or {}
    raw_dates = metadata.get("dates") or metadata.get("new_dates")
    if not raw_dates or not metadata.get("phone") or not metadata.get("confirmation_code"):
        return False

    try:
        days = sorted({date.fromisoformat(part.strip()) for part in raw_dates.split(",")})
    except ValueError:
        logger.error("Unreadable dates in metadata for payment %s: %r", payment_id, raw_dates)
        return False

    party = BookingParty(
        first_name=metadata.get("first_name") or "Guest",
        last_name=metadata.get("last_name") or "",
        phone=metadata["phone"],
        email=metadata.get("email") or None,
        mc_number=metadata.get("mc_number") or None,
        dot_number=metadata.get("dot_number") or "UNKNOWN",
        truck_info=metadata.get("truck_info") or None,
    )
    drafts = build_day_rows(
        party=party,
        days=days,
        total_amount=int(intent.get("amount") or 0),
        confirmation_code=metadata["confirmation_code"],
        status=STATUS_PENDING,
        payment_id=payment_id,
    )
    reservation_service.insert_rows(db, drafts)
    logger.warning("Rebuilt %d day-row(s) for payment %s from metadata", len(drafts), payment_id)
    return True


def _send_confirmation(settings: Settings, intent: dict, rows) -> None:
    metadata = intent.get("metadata") or {}
    first = rows[0]
    days = sorted({row.parking_date for row in rows})
    amount = intent.get("amount_received") or intent.get("amount")

    if metadata.get("type") == "extension":
        kind = MessageKind.BOOKING_EXTENDED
        extra = {"checkout_label": format_long_date(days[-1])}
    else:
        kind = MessageKind.BOOKING_CONFIRMED
        extra = {}

    body = render_message(
        kind,
        params_for(
            settings,
            name=first.first_name,
            date_list=format_date_list(days),
            amount_cents=int(amount) if amount is not None else None,
            confirmation_code=first.confirmation_code,
            **extra,
        ),
    )
    twilio_client.send_sms_safely(to=first.phone, body=body)


def _refund_if_owed(db: Session, payment_id: str) -> None:
    """Refund a payment whose rows all failed, unless Stripe already holds a refund."""
    rows = reservation_service.rows_for_payment(db, payment_id)
    if not rows or any(row.status != STATUS_FAILED for row in rows):
        return
    if stripe_client.has_refund(payment_id):
        return
    logger.warning("Payment %s has only failed reservations and no refund; refunding.", payment_id)
    stripe_client.refund_payment(payment_id)


def handle_payment_succeeded(db: Session, intent: dict) -> None:
    """Confirm the payment's rows. Raises RefundError when an owed refund did not go through."""
    settings = get_settings()
    payment_id = intent["id"]
    logger.info("Payment succeeded: %s", payment_id)

    if not reservation_service.rows_for_payment(db, payment_id):
        if not _rebuild_from_metadata(db, payment_id, intent):
            logger.error("No reservations found for payment %s", payment_id)
            return

    outcome = reservation_service.confirm_payment(db, payment_id, settings.max_daily_spots)
    if not outcome.rows:
        logger.info("Payment %s already processed; nothing to confirm.", payment_id)
        _refund_if_owed(db, payment_id)
        return

    if outcome.overbooked_days:
        logger.error(
            "Payment %s would overbook %s; reservations failed, refunding.",
            payment_id,
            ", ".join(day.isoformat() for day in outcome.overbooked_days),
        )
        stripe_client.refund_payment(payment_id)
        return

    logger.info("Confirmed %d day-row(s) for payment %s", len(outcome.rows), payment_id)
    _send_confirmation(settings, intent, outcome.rows)


def handle_payment_failed(db: Session, intent: dict) -> None:
    payment_id = intent["id"]
    changed = reservation_service.fail_payment(db, payment_id)
    logger.info("Payment failed: %s (%d day-row(s) marked failed)", payment_id, changed)


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await _read_limited_body(request)
    if payload is None:
        logger.error("Rejecting webhook request. Payload too large.")
        return JSONResponse({"error": "Max content length exceeded"}, status_code=413)

    try:
        event = stripe_client.construct_event(payload, request.headers.get("Stripe-Signature"))
    except ValueError:
        logger.error("Invalid webhook payload")
        return JSONResponse({"error": "Invalid payload"}, status_code=400)
    except SignatureVerificationError:
        logger.error("Invalid webhook signature")
        return JSONResponse({"error": "Invalid signature"}, status_code=400)

    event_type = event["type"]
    intent = event["data"]["object"]

    try:
        if event_type == PAYMENT_SUCCEEDED:
            handle_payment_succeeded(db, intent)
        elif event_type == PAYMENT_FAILED:
            handle_payment_failed(db, intent)
        else:
            logger.info("Ignoring webhook event type %s", event_type)
    except SQLAlchemyError:
        # Non-2xx makes Stripe retry; both handlers are safe to repeat.
        logger.exception("Database error while handling %s", event_type)
        return JSONResponse({"received": False}, status_code=500)
    except stripe_client.RefundError:
        # Redelivery finds the failed rows and retries the refund.
        logger.exception("Refund still owed for %s", intent.get("id"))
        return JSONResponse({"received": False}, status_code=500)

    return {"received": True}
