"""SMS message bodies for reservation lifecycle events.

Rendering is pure: no clock, no locale, no I/O. Weekday and month names are
fixed English so output does not depend on the host locale.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from apex_parking.core.config import Settings

WEEKDAYS_SHORT = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAYS_LONG = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTHS_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTHS_LONG = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


class MessageKind(str, Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    PARTNER_BOOKING_CONFIRMED = "partner_booking_confirmed"
    BOOKING_EXTENDED = "booking_extended"
    EXPIRATION_REMINDER = "expiration_reminder"
    THANK_YOU = "thank_you"


@dataclass(frozen=True)
class TemplateParams:
    name: str
    business_name: str
    business_phone: str
    business_address: str = ""
    date_list: str = ""
    amount_cents: int | None = None
    confirmation_code: str = ""
    gate_code: str = ""
    extend_url: str = ""
    review_url: str = ""
    checkout_label: str = ""
    checkout_time: str = "noon"


def format_short_date(day: date) -> str:
    return f"{WEEKDAYS_SHORT[day.weekday()]}, {MONTHS_SHORT[day.month - 1]} {day.day}"


def format_long_date(day: date) -> str:
    return f"{WEEKDAYS_LONG[day.weekday()]}, {MONTHS_LONG[day.month - 1]} {day.day}"


def format_date_list(days: list[date]) -> str:
    return ", ".join(format_short_date(day) for day in days)


def format_money(amount_cents: int) -> str:
    """Render minor units as major units with exactly two decimals."""
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{cents:02d}"


def _booking_confirmed(p: TemplateParams) -> str:
    lines = [
        f"{p.business_name} - Confirmed!",
        "",
        f"Hi {p.name}, your daily parking is reserved.",
        "",
        f"Location: {p.business_address}",
        "",
        f"Dates: {p.date_list}",
    ]
    if p.amount_cents is not None:
        lines.append(f"Paid: ${format_money(p.amount_cents)}")
    if p.gate_code:
        lines += ["", f"Gate Code: {p.gate_code}"]
    lines += ["", f"Conf#: {p.confirmation_code}", "", f"Questions? {p.business_phone}"]
    return "\n".join(lines)


def _partner_booking_confirmed(p: TemplateParams) -> str:
    lines = [
        f"{p.business_name} - Confirmed!",
        "",
        f"Hi {p.name}, your booking via Truck Parking Club is confirmed.",
        "",
        f"Location: {p.business_address}",
        "",
        f"Dates: {p.date_list}",
    ]
    if p.gate_code:
        lines += ["", f"Gate Code: {p.gate_code}"]
    lines += ["", f"Conf#: {p.confirmation_code}", "", f"Questions? {p.business_phone}"]
    return "\n".join(lines)


def _booking_extended(p: TemplateParams) -> str:
    lines = [
        f"{p.business_name} - Extended!",
        "",
        f"Hi {p.name}, your stay has been extended.",
        "",
        f"Added: {p.date_list}",
    ]
    if p.amount_cents is not None:
        lines.append(f"Paid: ${format_money(p.amount_cents)}")
    if p.checkout_label:
        lines += ["", f"New checkout: {p.checkout_label} at {p.checkout_time}"]
    lines += ["", f"Conf#: {p.confirmation_code}", "", "Thanks for staying with us!"]
    return "\n".join(lines)


def _expiration_reminder(p: TemplateParams) -> str:
    return "\n".join([
        f"Hi {p.name}! Your parking at {p.business_name} expires today at {p.checkout_time}.",
        "",
        "Need more time? Extend your stay here:",
        p.extend_url,
        "",
        f"Or call us: {p.business_phone}",
        "",
        "Thanks for parking with us!",
    ])


def _thank_you(p: TemplateParams) -> str:
    return "\n".join([
        f"Hi {p.name}! Thanks for parking at {p.business_name}. We hope you had a great stay!",
        "",
        "If you had a good experience, we'd really appreciate a quick Google review"
        " - it helps other truckers find us:",
        "",
        p.review_url,
        "",
        "Safe travels and see you next time!",
        f"- {p.business_name} Team",
    ])


_RENDERERS = {
    MessageKind.BOOKING_CONFIRMED: _booking_confirmed,
    MessageKind.PARTNER_BOOKING_CONFIRMED: _partner_booking_confirmed,
    MessageKind.BOOKING_EXTENDED: _booking_extended,
    MessageKind.EXPIRATION_REMINDER: _expiration_reminder,
    MessageKind.THANK_YOU: _thank_you,
}


def render_message(kind: MessageKind, params: TemplateParams) -> str:
    return _RENDERERS[MessageKind(kind)](params)


def format_hour(hour: int) -> str:
    if hour == 12:
        return "noon"
    if hour in (0, 24):
        return "midnight"
    suffix = "AM" if hour < 12 else "PM"
    return f"{(hour % 12) or 12} {suffix}"


def params_for(settings: Settings, name: str, **fields) -> TemplateParams:
    """Template parameters pre-filled with the lot's business details."""
    return TemplateParams(
        name=name,
        business_name=settings.business_name,
        business_phone=settings.business_phone,
        business_address=settings.business_address,
        gate_code=settings.gate_code,
        checkout_time=format_hour(settings.checkout_hour),
        **fields,
    )
