import os
import unittest
from datetime import date
from unittest import mock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from apex_parking.core.config import get_settings
from apex_parking.db.init_db import init_db
from apex_parking.db.models import STATUS_CONFIRMED, Reservation
from apex_parking.db.session import get_db
from apex_parking.services import reservation_service
from apex_parking.services.normalizer import BookingParty, build_day_rows
from main import app

PARTNER_SAMPLE = """Your parking spot "Lithonia, GA Truck & Trailer Parking on Marbut Rd, 6759 Marbut Rd" has been rented for 1 vehicle(s) from February 5 2026, 12:15 PM to February 6 2026, 12:15 PM
Booking #: EXT_KHE1I
Trucker Member #: ZSP386
Company Name on Trailer:
Trailer Type: Dry van
Trailer #: 096102
Trailer Plate:
"""

DRIVER = BookingParty(
    first_name="Jane",
    last_name="Doe",
    phone="4045551234",
    dot_number="1234567",
)


class DatabaseTestCase(unittest.TestCase):
    """Each test gets a fresh in-memory database wired into the app."""

    env: dict[str, str] = {}

    def setUp(self):
        env_patch = mock.patch.dict(os.environ, self.env)
        env_patch.start()
        self.addCleanup(env_patch.stop)
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)

        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        init_db(self.engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.Session()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.db.close()
        self.engine.dispose()

    def add_booking(
        self,
        days: list[date],
        code: str = "APX-TEST01",
        status: str = STATUS_CONFIRMED,
        payment_id: str | None = "pi_existing",
        party: BookingParty = DRIVER,
        total: int | None = None,
    ) -> list[Reservation]:
        drafts = build_day_rows(
            party=party,
            days=days,
            total_amount=2000 * len(days) if total is None else total,
            confirmation_code=code,
            status=status,
            payment_id=payment_id,
        )
        return reservation_service.insert_rows(self.db, drafts)

    def fill_day(self, day: date, count: int = 4) -> None:
        for index in range(count):
            self.add_booking([day], code=f"APX-FULL{index:02d}", payment_id=f"pi_full_{day}_{index}")

    def rows(self, **filters) -> list[Reservation]:
        self.db.expire_all()
        query = select(Reservation).order_by(Reservation.parking_date, Reservation.id)
        for name, value in filters.items():
            query = query.where(getattr(Reservation, name) == value)
        return list(self.db.scalars(query))
