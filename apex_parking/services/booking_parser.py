"""Extract partner bookings from Truck Parking Club notification text.

The partner sends the same template by SMS and by email, for example::

    Your parking spot "Lithonia, GA Truck & Trailer Parking on Marbut Rd, ..."
    has been rented for 1 vehicle(s) from February 5 2026, 12:15 PM to February 6 2026, 12:15 PM
    Booking #: EXT_KHE1I
    Trucker Member #: ZSP386
    Company Name on Trailer:
    Trailer Type: Dry van
    Trailer #: 096102
    Trailer Plate:

Each field is pulled by its own rule so a change to one line of the template
only loses that field. The date range is the one field a booking cannot do
without; when it is missing or unreadable the whole message is rejected.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from apex_parking.services.availability import MAX_STAY_DAYS, days_for_stay
from apex_parking.services.normalizer import generate_confirmation_code

logger = logging.getLogger(__name__)

UNKNOWN_MEMBER = "UNKNOWN"
PARTNER_CODE_PREFIX = "TPC"
MAX_VEHICLES_PER_BOOKING = 10

_TIMESTAMP = r"[A-Za-z]+\.?\s+\d{1,2},?\s+\d{4},?\s+\d{1,2}:\d{2}\s*[AP]\.?M\.?"

DATE_RANGE_PATTERN = re.compile(
    rf"from\s+({_TIMESTAMP})\s+to\s+({_TIMESTAMP})",
    re.IGNORECASE,
)

_TIMESTAMP_FORMATS = ("%B %d %Y %I:%M %p", "%b %d %Y %I:%M %p")


@dataclass(frozen=True)
class ParsedBooking:
    check_in: datetime
    check_out: datetime
    confirmation_code: str
    member_number: str = UNKNOWN_MEMBER
    company_name: str = ""
    trailer_type: str = ""
    trailer_number: str = ""
    trailer_plate: str = ""
    vehicle_count: int = 1


@dataclass(frozen=True)
class FieldRule:
    """One optional field: a label-anchored pattern and how to read its first group."""

    field: str
    pattern: re.Pattern
    convert: Callable[[str], Any] = str.strip

    def extract(self, text: str) -> Any | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        try:
            value = self.convert(match.group(1))
        except ValueError:
            logger.warning("Could not read %s from %r", self.field, match.group(1))
            return None
        return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise ValueError(raw)
    return value


# [ \t]* after a label keeps a blank field from swallowing the next line.
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("confirmation_code", re.compile(r"Booking\s*#:[ \t]*(\S+)", re.IGNORECASE)),
    FieldRule("member_number", re.compile(r"Trucker\s*Member\s*#:[ \t]*(\S+)", re.IGNORECASE)),
    FieldRule(
        "company_name",
        re.compile(
            r"Company\s*Name\s*on\s*Trailer:[ \t]*(.*?)[ \t]*(?=\n|Trailer\s*Type|$)",
            re.IGNORECASE,
        ),
    ),
    FieldRule(
        "trailer_type",
        re.compile(r"Trailer\s*Type:[ \t]*(.*?)[ \t]*(?=\n|Trailer\s*#|$)", re.IGNORECASE),
    ),
    FieldRule("trailer_number", re.compile(r"Trailer\s*#:[ \t]*(\S*)", re.IGNORECASE)),
    FieldRule("trailer_plate", re.compile(r"Trailer\s*Plate:[ \t]*(\S*)", re.IGNORECASE)),
    FieldRule("vehicle_count", re.compile(r"(\d+)\s*vehicle\(s\)", re.IGNORECASE), _positive_int),
)


def parse_partner_timestamp(raw: str) -> datetime | None:
    """Parse `February 5 2026, 12:15 PM` style timestamps."""
    cleaned = " ".join(raw.replace(",", " ").replace(".", "").split())
    # strptime wants "PM", not "12:15PM" glued together.
    cleaned = re.sub(r"(\d)([AaPp][Mm])$", r"\1 \2", cleaned)
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def extract_date_range(text: str) -> tuple[datetime, datetime] | None:
    match = DATE_RANGE_PATTERN.search(text)
    if match is None:
        return None

    check_in = parse_partner_timestamp(match.group(1))
    check_out = parse_partner_timestamp(match.group(2))
    if check_in is None or check_out is None:
        logger.warning("Unreadable partner date range: %r", match.group(0))
        return None
    return check_in, check_out


def parse_partner_message(text: str | None) -> ParsedBooking | None:
    """Return the booking described by a partner message.

    None when it has no usable dates or asks for more vehicles or days than one booking may hold.
    """
    if not text:
        return None

    try:
        date_range = extract_date_range(text)
        if date_range is None:
            logger.info("No booking date range found in partner message.")
            return None

        fields: dict[str, Any] = {}
        for rule in FIELD_RULES:
            value = rule.extract(text)
            if value is not None:
                fields[rule.field] = value

        if "confirmation_code" not in fields:
            fields["confirmation_code"] = generate_confirmation_code(PARTNER_CODE_PREFIX)

        check_in, check_out = date_range
        if fields.get("vehicle_count", 1) > MAX_VEHICLES_PER_BOOKING:
            logger.warning("Partner message asks for %d vehicles; rejecting.", fields["vehicle_count"])
            return None
        if len(days_for_stay(check_in, check_out)) > MAX_STAY_DAYS:
            logger.warning("Partner stay from %s to %s is too long; rejecting.", check_in, check_out)
            return None
        return ParsedBooking(check_in=check_in, check_out=check_out, **fields)
    except Exception:
        logger.exception("Unexpected error while parsing partner message.")
        return None
