"""Turn a booking (web checkout, partner SMS or partner email) into day-rows."""

import secrets
import string
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apex_parking.services.booking_parser import ParsedBooking

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


@dataclass(frozen=True)
class BookingParty:
    first_name: str
    last_name: str
    phone: str
    dot_number: str
    email: str | None = None
    mc_number: str | None = None
    truck_info: str | None = None


@dataclass(frozen=True)
class ReservationDraft:
    """A day-row ready to be persisted."""

    confirmation_code: str
    first_name: str
    last_name: str
    phone: str
    email: str | None
    mc_number: str | None
    dot_number: str
    truck_info: str | None
    parking_date: date
    parking_type: str
    amount: int
    status: str
    stripe_payment_id: str | None


def generate_confirmation_code(prefix: str) -> str:
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{prefix}-{suffix}"


def apportion_amount(total: int, parts: int) -> list[int]:
    """Split `total` minor units over `parts` rows; the last row absorbs the remainder."""
    if parts < 1:
        raise ValueError("parts must be at least 1")
    if total < 0:
        raise ValueError("total must not be negative")

    share = total // parts
    return [share] * (parts - 1) + [total - share * (parts - 1)]


def split_full_name(full_name: str | None) -> tuple[str, str]:
    tokens = (full_name or "").split()
    if not tokens:
        return "Guest", ""
    return tokens[0], " ".join(tokens[1:])


def party_from_parsed(parsed: "ParsedBooking") -> BookingParty:
    """Partner SMS bookings carry no name or phone; the member number stands in for both."""
    description = f"{parsed.trailer_type or 'Trailer'} #{parsed.trailer_number or 'N/A'}"
    if parsed.trailer_plate:
        description += f" (plate {parsed.trailer_plate})"
    description += f" - {parsed.company_name or 'TPC Booking'}"

    return BookingParty(
        first_name="TPC",
        last_name=parsed.member_number,
        phone=parsed.member_number,
        dot_number=parsed.member_number,
        truck_info=description,
    )


def build_day_rows(
    party: BookingParty,
    days: list[date],
    total_amount: int,
    confirmation_code: str,
    status: str,
    payment_id: str | None = None,
    spots_per_day: int = 1,
    parking_type: str = "daily",
) -> list[ReservationDraft]:
    """One row per day per occupied spot, all sharing party, code and payment."""
    if not days:
        raise ValueError("a booking needs at least one day")

    occupied = [day for day in days for _ in range(max(1, spots_per_day))]
    amounts = apportion_amount(total_amount, len(occupied))

    return [
        ReservationDraft(
            confirmation_code=confirmation_code,
            first_name=party.first_name,
            last_name=party.last_name,
            phone=party.phone,
            email=party.email,
            mc_number=party.mc_number,
            dot_number=party.dot_number,
            truck_info=party.truck_info,
            parking_date=day,
            parking_type=parking_type,
            amount=amount,
            status=status,
            stripe_payment_id=payment_id,
        )
        for day, amount in zip(occupied, amounts)
    ]
