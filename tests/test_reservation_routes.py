from datetime import date, datetime
from unittest import mock

from apex_parking.db.models import STATUS_CONFIRMED, STATUS_PENDING
from apex_parking.services.stripe_client import PaymentIntentResult
from tests.support import DatabaseTestCase

INTENT = PaymentIntentResult(id="pi_test_123", client_secret="pi_test_123_secret_abc")


class AvailabilityRouteTest(DatabaseTestCase):
    def test_day_with_three_bookings_is_available(self):
        day = date(2030, 5, 1)
        self.fill_day(day, count=3)

        response = self.client.get("/api/check-availability", params={"date": "2030-05-01"})
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["spotsBooked"], 3)
        self.assertEqual(data["spotsAvailable"], 1)
        self.assertEqual(data["maxSpots"], 4)
        self.assertTrue(data["isAvailable"])

    def test_full_day_is_unavailable(self):
        self.fill_day(date(2030, 5, 1), count=4)

        data = self.client.get("/api/check-availability?date=2030-05-01").json()["data"]
        self.assertEqual(data["spotsAvailable"], 0)
        self.assertFalse(data["isAvailable"])

    def test_pending_and_failed_rows_do_not_count(self):
        day = date(2030, 5, 1)
        self.add_booking([day], code="APX-PEND01", status=STATUS_PENDING, payment_id="pi_a")
        self.add_booking([day], code="APX-FAIL01", status="failed", payment_id="pi_b")

        data = self.client.get("/api/check-availability?date=2030-05-01").json()["data"]
        self.assertEqual(data["spotsBooked"], 0)

    def test_bad_date_is_400(self):
        response = self.client.get("/api/check-availability?date=not-a-date")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_calendar_marks_full_days_and_selection(self):
        self.fill_day(date(2030, 5, 16), count=4)

        response = self.client.get(
            "/api/calendar",
            params=[("year", 2030), ("month", 5), ("selected", "2030-05-20"), ("selected", "2030-05-16")],
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["selectedDates"], ["2030-05-20"])
        self.assertEqual(data["totalAmount"], 2000)

        cells = {cell["date"]: cell for week in data["weeks"] for cell in week if cell}
        self.assertFalse(cells["2030-05-16"]["isAvailable"])
        self.assertTrue(cells["2030-05-20"]["isSelected"])
        self.assertFalse(cells["2030-05-16"]["isSelectable"])
        self.assertTrue(cells["2030-05-21"]["isSelectable"])

    def test_calendar_rejects_full_day_from_another_month(self):
        self.fill_day(date(2030, 6, 10), count=4)

        response = self.client.get(
            "/api/calendar",
            params=[("year", 2030), ("month", 5), ("selected", "2030-06-10"), ("selected", "2030-06-11")],
        )

        data = response.json()["data"]
        self.assertEqual(data["selectedDates"], ["2030-06-11"])
        self.assertEqual(data["totalAmount"], 2000)

    @mock.patch("apex_parking.routes.reservations.local_now", return_value=datetime(2030, 3, 10, 9, 0))
    def test_calendar_fills_missing_year_or_month_from_today(self, _):
        only_month = self.client.get("/api/calendar", params={"month": 8}).json()["data"]
        only_year = self.client.get("/api/calendar", params={"year": 2031}).json()["data"]

        self.assertEqual((only_month["year"], only_month["month"]), (2030, 8))
        self.assertEqual((only_year["year"], only_year["month"]), (2031, 3))

    @mock.patch("apex_parking.routes.reservations.local_now", return_value=datetime(2030, 3, 10, 9, 0))
    def test_calendar_offset_moves_between_months(self, _):
        forward = self.client.get("/api/calendar", params={"year": 2030, "month": 12, "offset": 1}).json()["data"]
        back = self.client.get("/api/calendar", params={"offset": -3}).json()["data"]

        self.assertEqual((forward["year"], forward["month"]), (2031, 1))
        self.assertEqual((back["year"], back["month"]), (2029, 12))
        cells = [cell for week in back["weeks"] for cell in week if cell]
        self.assertTrue(all(cell["isPast"] and not cell["isSelectable"] for cell in cells))

    def test_calendar_offset_is_bounded(self):
        response = self.client.get("/api/calendar", params={"offset": 25})
        self.assertEqual(response.status_code, 400)


class CreateReservationTest(DatabaseTestCase):
    payload = {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "jane@example.com",
        "phone": "4045551234",
        "dotNumber": "1234567",
        "truckInfo": "Red Freightliner",
        "dates": ["2030-05-02", "2030-05-01"],
        "totalAmount": 4500,
    }

    @mock.patch("apex_parking.services.stripe_client.create_payment_intent", return_value=INTENT)
    def test_creates_pending_rows(self, create_intent):
        response = self.client.post("/api/create-reservation", json=self.payload)

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["clientSecret"], INTENT.client_secret)
        self.assertRegex(data["confirmationCode"], r"^APX-[A-Z0-9]{6}$")

        rows = self.rows(stripe_payment_id=INTENT.id)
        self.assertEqual([row.parking_date for row in rows], [date(2030, 5, 1), date(2030, 5, 2)])
        self.assertTrue(all(row.status == STATUS_PENDING for row in rows))
        self.assertEqual(sum(row.amount for row in rows), 4500)

        kwargs = create_intent.call_args.kwargs
        self.assertEqual(kwargs["amount"], 4500)
        self.assertEqual(kwargs["metadata"]["dates"], "2030-05-01, 2030-05-02")
        self.assertEqual(kwargs["metadata"]["customer_name"], "Jane Doe")

    @mock.patch("apex_parking.services.stripe_client.create_payment_intent", return_value=INTENT)
    def test_full_day_is_rejected_before_charging(self, create_intent):
        self.fill_day(date(2030, 5, 2))

        response = self.client.post("/api/create-reservation", json=self.payload)

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "CAPACITY_EXCEEDED")
        self.assertIn("2030-05-02", error["message"])
        create_intent.assert_not_called()

    def test_missing_fields_are_400(self):
        payload = dict(self.payload, dates=[])
        response = self.client.post("/api/create-reservation", json=payload)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

        payload = dict(self.payload, phone="   ")
        self.assertEqual(self.client.post("/api/create-reservation", json=payload).status_code, 400)

    def test_past_dates_are_rejected(self):
        payload = dict(self.payload, dates=["2001-01-01"])
        response = self.client.post("/api/create-reservation", json=payload)
        self.assertEqual(response.status_code, 400)

    def test_payments_not_configured(self):
        response = self.client.post("/api/create-reservation", json=self.payload)
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"]["code"], "PAYMENT_ERROR")
        self.assertEqual(self.rows(), [])


class ExtendStayTest(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.add_booking([date(2030, 6, 1), date(2030, 6, 2)], code="APX-AAAAAA")

    @mock.patch("apex_parking.services.stripe_client.create_payment_intent", return_value=INTENT)
    def test_extends_after_last_day(self, create_intent):
        response = self.client.post(
            "/api/extend-stay",
            json={"confirmationCode": "APX-AAAAAA", "additionalDays": 2, "amount": 4000},
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["newDates"], ["2030-06-03", "2030-06-04"])
        self.assertEqual(data["newCheckout"], "Tuesday, June 4")

        new_rows = self.rows(stripe_payment_id=INTENT.id)
        self.assertEqual(len(new_rows), 2)
        self.assertTrue(all(row.confirmation_code == "APX-AAAAAA" for row in new_rows))
        self.assertTrue(all(row.status == STATUS_PENDING for row in new_rows))
        self.assertEqual(create_intent.call_args.kwargs["metadata"]["type"], "extension")

    def test_unknown_code_is_404(self):
        response = self.client.post(
            "/api/extend-stay",
            json={"confirmationCode": "APX-ZZZZZZ", "additionalDays": 1, "amount": 2000},
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "RESERVATION_NOT_FOUND")

    @mock.patch("apex_parking.services.stripe_client.create_payment_intent", return_value=INTENT)
    def test_full_extension_day_is_409(self, create_intent):
        self.fill_day(date(2030, 6, 3))
        response = self.client.post(
            "/api/extend-stay",
            json={"confirmationCode": "APX-AAAAAA", "additionalDays": 1, "amount": 2000},
        )
        self.assertEqual(response.status_code, 409)
        create_intent.assert_not_called()
        self.assertEqual(len(self.rows(confirmation_code="APX-AAAAAA", status=STATUS_CONFIRMED)), 2)


class HealthTest(DatabaseTestCase):
    def test_root(self):
        response = self.client.get("/", headers={"X-Request-ID": "req-1"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["X-Request-ID"], "req-1")
