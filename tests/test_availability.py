import unittest
from datetime import date, datetime

from apex_parking.services.availability import (
    days_after,
    days_for_stay,
    enumerate_days,
    find_full_days,
    is_date_available,
    spots_remaining,
)


class AvailabilityTest(unittest.TestCase):
    def test_is_date_available(self):
        self.assertTrue(is_date_available(3, 4))
        self.assertFalse(is_date_available(4, 4))
        self.assertFalse(is_date_available(5, 4))

    def test_spots_remaining_never_negative(self):
        self.assertEqual(spots_remaining(1, 4), 3)
        self.assertEqual(spots_remaining(6, 4), 0)

    def test_enumerate_days_is_half_open(self):
        days = enumerate_days(date(2030, 1, 30), date(2030, 2, 2))
        self.assertEqual(days, [date(2030, 1, 30), date(2030, 1, 31), date(2030, 2, 1)])

    def test_enumerate_days_uses_calendar_dates(self):
        days = enumerate_days(datetime(2026, 2, 5, 12, 15), datetime(2026, 2, 6, 12, 15))
        self.assertEqual(days, [date(2026, 2, 5)])

        days = enumerate_days(datetime(2026, 2, 5, 23, 0), datetime(2026, 2, 6, 1, 0))
        self.assertEqual(days, [date(2026, 2, 5)])

    def test_enumerate_days_empty_when_not_after(self):
        self.assertEqual(enumerate_days(date(2030, 3, 3), date(2030, 3, 3)), [])
        self.assertEqual(enumerate_days(date(2030, 3, 4), date(2030, 3, 3)), [])

    def test_days_for_stay_falls_back_to_check_in(self):
        self.assertEqual(
            days_for_stay(datetime(2030, 3, 3, 8, 0), datetime(2030, 3, 3, 20, 0)),
            [date(2030, 3, 3)],
        )

    def test_days_after(self):
        self.assertEqual(
            days_after(date(2030, 12, 30), 3),
            [date(2030, 12, 31), date(2031, 1, 1), date(2031, 1, 2)],
        )

    def test_find_full_days(self):
        requested = {date(2030, 1, 1): 1, date(2030, 1, 2): 2}
        booked = {date(2030, 1, 1): 3, date(2030, 1, 2): 3}
        self.assertEqual(find_full_days(requested, booked, 4), [date(2030, 1, 2)])
