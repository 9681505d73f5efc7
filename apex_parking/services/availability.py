"""Availability and date-range helpers shared by checkout and booking ingestion.

Everything here works at calendar-day granularity: datetimes are reduced to
their date before comparing or keying.
"""

from datetime import date, datetime, timedelta

# Longest stay one booking may cover.
MAX_STAY_DAYS = 90


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_date_available(booked_count: int, max_spots: int) -> bool:
    """True when another spot can still be booked on a day."""
    return booked_count < max_spots


def spots_remaining(booked_count: int, max_spots: int) -> int:
    return max(0, max_spots - booked_count)


def enumerate_days(check_in: date | datetime, check_out: date | datetime) -> list[date]:
    """Return the half-open day range [check_in, check_out).

    Empty when check_out's calendar date is not after check_in's.
    """
    start = _as_date(check_in)
    end = _as_date(check_out)
    return [start + timedelta(days=offset) for offset in range((end - start).days)]


def days_for_stay(check_in: date | datetime, check_out: date | datetime) -> list[date]:
    """Days occupied by a stay; a same-day or inverted stay still occupies check-in day."""
    days = enumerate_days(check_in, check_out)
    if not days:
        return [_as_date(check_in)]
    return days


def days_after(last_day: date, count: int) -> list[date]:
    """The `count` consecutive days following `last_day`."""
    return [last_day + timedelta(days=offset) for offset in range(1, count + 1)]


def find_full_days(
    requested: dict[date, int],
    booked_counts: dict[date, int],
    max_spots: int,
) -> list[date]:
    """Days where adding the requested spots would exceed capacity.

    `requested` maps each day to the number of spots a booking wants on it.
    """
    return sorted(
        day
        for day, wanted in requested.items()
        if booked_counts.get(day, 0) + wanted > max_spots
    )
