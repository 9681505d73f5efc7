import unittest
from datetime import datetime

from apex_parking.services.booking_parser import (
    MAX_VEHICLES_PER_BOOKING,
    UNKNOWN_MEMBER,
    parse_partner_message,
    parse_partner_timestamp,
)
from apex_parking.services.availability import days_for_stay
from tests.support import PARTNER_SAMPLE


class BookingParserTest(unittest.TestCase):
    def test_parses_partner_sample(self):
        parsed = parse_partner_message(PARTNER_SAMPLE)

        self.assertIsNotNone(parsed)
        self.assertEqual(parsed.confirmation_code, "EXT_KHE1I")
        self.assertEqual(parsed.member_number, "ZSP386")
        self.assertEqual(parsed.company_name, "")
        self.assertEqual(parsed.trailer_type, "Dry van")
        self.assertEqual(parsed.trailer_number, "096102")
        self.assertEqual(parsed.trailer_plate, "")
        self.assertEqual(parsed.vehicle_count, 1)
        self.assertEqual(parsed.check_in, datetime(2026, 2, 5, 12, 15))
        self.assertEqual(parsed.check_out, datetime(2026, 2, 6, 12, 15))
        self.assertEqual(len(days_for_stay(parsed.check_in, parsed.check_out)), 1)

    def test_message_without_dates_is_rejected(self):
        self.assertIsNone(parse_partner_message("Booking #: ABC123\nTrucker Member #: Z1"))
        self.assertIsNone(parse_partner_message(""))
        self.assertIsNone(parse_partner_message(None))

    def test_unreadable_dates_are_rejected(self):
        text = "rented from Smarch 40 2026, 12:15 PM to Smarch 41 2026, 12:15 PM"
        self.assertIsNone(parse_partner_message(text))

    def test_missing_fields_get_defaults(self):
        parsed = parse_partner_message(
            "rented for 2 vehicle(s) from March 1 2030, 9:00 AM to March 4 2030, 9:00 AM"
        )
        self.assertEqual(parsed.member_number, UNKNOWN_MEMBER)
        self.assertTrue(parsed.confirmation_code.startswith("TPC-"))
        self.assertEqual(parsed.vehicle_count, 2)
        self.assertEqual(len(days_for_stay(parsed.check_in, parsed.check_out)), 3)

    def test_timestamp_variants(self):
        expected = datetime(2026, 2, 5, 12, 15)
        self.assertEqual(parse_partner_timestamp("February 5 2026, 12:15 PM"), expected)
        self.assertEqual(parse_partner_timestamp("Feb. 5, 2026 12:15PM"), expected)
        self.assertIsNone(parse_partner_timestamp("tomorrow at noon"))

    def test_vehicle_count_above_cap_is_rejected(self):
        text = PARTNER_SAMPLE.replace("1 vehicle(s)", f"{MAX_VEHICLES_PER_BOOKING + 1} vehicle(s)")
        self.assertIsNone(parse_partner_message(text))

        text = PARTNER_SAMPLE.replace("1 vehicle(s)", f"{MAX_VEHICLES_PER_BOOKING} vehicle(s)")
        self.assertEqual(parse_partner_message(text).vehicle_count, MAX_VEHICLES_PER_BOOKING)

    def test_stay_longer_than_cap_is_rejected(self):
        text = "rented for 1 vehicle(s) from March 1 2030, 9:00 AM to March 1 2033, 9:00 AM"
        self.assertIsNone(parse_partner_message(text))
