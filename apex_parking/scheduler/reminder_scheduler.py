"""Reminder sweep for checkout-day and post-stay text messages.

Uses APScheduler BackgroundScheduler to run every 30 minutes. Each run:
1. Sends an expiration reminder to parkers whose stay ends today, within the
   hour around two hours before checkout.
2. Sends a thank-you + review request to parkers whose stay ended yesterday.

Rows are marked only after Twilio accepts the message, and marked rows are
excluded from later runs, so overlapping or retried sweeps do not resend.
Partner bookings are skipped; the partner handles its own messaging.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import select
from sqlalchemy.orm import Session

from apex_parking.core.config import Settings, get_settings
from apex_parking.db.models import PARTNER_PAYMENT_PREFIX, STATUS_CONFIRMED, Reservation
from apex_parking.db.session import SessionLocal
from apex_parking.services import twilio_client
from apex_parking.services.notifications import MessageKind, params_for, render_message

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_MINUTES = 30
REMINDER_LEAD_HOURS = 2


@dataclass
class SweepResult:
    sent: int = 0
    failed: int = 0
    candidates: int = 0
    skipped: str | None = None

    def as_dict(self) -> dict:
        data = {"sent": self.sent, "failed": self.failed, "candidates": self.candidates}
        if self.skipped:
            data["skipped"] = self.skipped
        return data


def local_now(settings: Settings | None = None) -> datetime:
    settings = settings or get_settings()
    return datetime.now(ZoneInfo(settings.lot_timezone))


def _site_rows(parking_date: date):
    """Confirmed rows on `parking_date` that were paid through the site (not partner rows)."""
    return (
        select(Reservation)
        .where(Reservation.parking_date == parking_date)
        .where(Reservation.status == STATUS_CONFIRMED)
        .where(Reservation.stripe_payment_id.is_not(None))
        .where(Reservation.stripe_payment_id.not_like(f"{PARTNER_PAYMENT_PREFIX}%"))
        .order_by(Reservation.id.asc())
    )


def _codes_parked_on(db: Session, parking_date: date, codes: set[str]) -> set[str]:
    if not codes:
        return set()
    return set(
        db.scalars(
            select(Reservation.confirmation_code)
            .where(Reservation.parking_date == parking_date)
            .where(Reservation.status == STATUS_CONFIRMED)
            .where(Reservation.confirmation_code.in_(codes))
        )
    )


def _extend_url(settings: Settings, reservation: Reservation) -> str:
    query = urlencode({"confirmation": reservation.confirmation_code, "phone": reservation.phone})
    return f"{settings.site_url}/extend.html?{query}"


def _send_and_mark(db: Session, reservation: Reservation, body: str, marker: str) -> bool:
    try:
        twilio_client.send_sms(to=reservation.phone, body=body)
    except Exception:
        logger.exception(
            "Failed to send %s for reservation %d to %s",
            marker,
            reservation.id,
            reservation.phone,
        )
        return False

    setattr(reservation, marker, datetime.now(timezone.utc))
    db.commit()
    return True


def send_expiration_reminders(
    db: Session,
    now: datetime,
    settings: Settings | None = None,
) -> SweepResult:
    """Remind parkers whose stay ends at checkout today."""
    settings = settings or get_settings()
    reminder_hour = settings.checkout_hour - REMINDER_LEAD_HOURS
    if abs(now.hour - reminder_hour) > 1:
        return SweepResult(skipped="Outside reminder window")

    today = now.date()
    reservations = db.scalars(
        _site_rows(today).where(Reservation.expiration_reminder_sent.is_(None))
    ).all()

    # A booking that continues tomorrow does not expire today.
    continuing = _codes_parked_on(
        db,
        today + timedelta(days=1),
        {reservation.confirmation_code for reservation in reservations},
    )

    result = SweepResult()
    for reservation in reservations:
        if reservation.confirmation_code in continuing:
            continue
        result.candidates += 1

        body = render_message(
            MessageKind.EXPIRATION_REMINDER,
            params_for(
                settings,
                name=reservation.first_name,
                confirmation_code=reservation.confirmation_code,
                extend_url=_extend_url(settings, reservation),
            ),
        )
        if _send_and_mark(db, reservation, body, "expiration_reminder_sent"):
            result.sent += 1
        else:
            result.failed += 1

    logger.info(
        "Expiration reminders: %d sent, %d failed out of %d.",
        result.sent,
        result.failed,
        result.candidates,
    )
    return result


def send_thank_you_messages(
    db: Session,
    now: datetime,
    settings: Settings | None = None,
) -> SweepResult:
    """Thank parkers whose stay ended yesterday and ask for a review."""
    settings = settings or get_settings()
    today = now.date()
    yesterday = today - timedelta(days=1)

    reservations = db.scalars(
        _site_rows(yesterday).where(Reservation.followup_sent.is_(None))
    ).all()
    still_parked = _codes_parked_on(
        db,
        today,
        {reservation.confirmation_code for reservation in reservations},
    )

    result = SweepResult()
    for reservation in reservations:
        if reservation.confirmation_code in still_parked:
            continue
        result.candidates += 1

        body = render_message(
            MessageKind.THANK_YOU,
            params_for(
                settings,
                name=reservation.first_name,
                confirmation_code=reservation.confirmation_code,
                review_url=settings.google_review_url,
            ),
        )
        if _send_and_mark(db, reservation, body, "followup_sent"):
            result.sent += 1
        else:
            result.failed += 1

    logger.info(
        "Thank-you messages: %d sent, %d failed out of %d.",
        result.sent,
        result.failed,
        result.candidates,
    )
    return result


def run_reminder_sweep(db: Session, now: datetime | None = None) -> dict[str, dict]:
    settings = get_settings()
    now = now or local_now(settings)
    logger.info("Running reminder sweep at %s", now.isoformat())
    return {
        "expirationReminders": send_expiration_reminders(db, now, settings).as_dict(),
        "thankYouMessages": send_thank_you_messages(db, now, settings).as_dict(),
    }


def _scheduled_sweep() -> None:
    db = SessionLocal()
    try:
        run_reminder_sweep(db)
    except Exception:
        logger.exception("Unhandled error in reminder sweep.")
    finally:
        db.close()


def start_scheduler() -> BackgroundScheduler:
    """Create, configure, and start the background reminder scheduler.

    Returns the scheduler instance so the caller can shut it down if needed.
    """
    scheduler = BackgroundScheduler(daemon=True)

    scheduler.add_job(
        _scheduled_sweep,
        trigger="interval",
        minutes=SWEEP_INTERVAL_MINUTES,
        id="reservation_reminder_sweep",
        name="Send expiration reminders and thank-you texts",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("Reminder scheduler started (every %d minutes).", SWEEP_INTERVAL_MINUTES)
    return scheduler
