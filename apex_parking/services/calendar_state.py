"""Immutable date-picker state for the checkout calendar.

Every event (month navigation, toggling a day) returns a new CalendarState;
nothing here mutates shared state or touches storage.
"""

import calendar
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date

from apex_parking.services.availability import is_date_available, spots_remaining

# Sunday-first weeks, as the checkout page lays them out.
_MONTH_CALENDAR = calendar.Calendar(firstweekday=calendar.SUNDAY)


@dataclass(frozen=True)
class CalendarState:
    year: int
    month: int
    selected: frozenset[date] = field(default_factory=frozenset)

    @property
    def selected_days(self) -> list[date]:
        return sorted(self.selected)


@dataclass(frozen=True)
class DayCell:
    day: date
    spots_booked: int
    spots_available: int
    is_available: bool
    is_past: bool
    is_selected: bool

    @property
    def is_selectable(self) -> bool:
        return self.is_available and not self.is_past


def initial_state(today: date) -> CalendarState:
    return CalendarState(year=today.year, month=today.month)


def shift_month(state: CalendarState, delta: int) -> CalendarState:
    index = state.year * 12 + (state.month - 1) + delta
    year, month_index = divmod(index, 12)
    return replace(state, year=year, month=month_index + 1)


def toggle_date(
    state: CalendarState,
    day: date,
    booked_count: int,
    max_spots: int,
    today: date,
) -> CalendarState:
    """Select or deselect `day`. Past and fully booked days cannot be selected."""
    if day in state.selected:
        return replace(state, selected=state.selected - {day})
    if day < today or not is_date_available(booked_count, max_spots):
        return state
    return replace(state, selected=state.selected | {day})


def month_bounds(state: CalendarState) -> tuple[date, date]:
    last_day = calendar.monthrange(state.year, state.month)[1]
    return date(state.year, state.month, 1), date(state.year, state.month, last_day)


def month_grid(
    state: CalendarState,
    booked_counts: Mapping[date, int],
    max_spots: int,
    today: date,
) -> list[list[DayCell | None]]:
    """Weeks of the displayed month; days belonging to neighbouring months are None."""
    weeks: list[list[DayCell | None]] = []
    for week in _MONTH_CALENDAR.monthdatescalendar(state.year, state.month):
        row: list[DayCell | None] = []
        for day in week:
            if day.month != state.month:
                row.append(None)
                continue
            booked = booked_counts.get(day, 0)
            row.append(
                DayCell(
                    day=day,
                    spots_booked=booked,
                    spots_available=spots_remaining(booked, max_spots),
                    is_available=is_date_available(booked, max_spots),
                    is_past=day < today,
                    is_selected=day in state.selected,
                )
            )
        weeks.append(row)
    return weeks


def selection_total(state: CalendarState, daily_rate_cents: int) -> int:
    return len(state.selected) * daily_rate_cents
