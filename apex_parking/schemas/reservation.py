import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from apex_parking.services.availability import MAX_STAY_DAYS


class CamelModel(BaseModel):
    """Checkout pages send and expect camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateReservationRequest(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: str | None = None
    phone: str = Field(min_length=1)
    mc_number: str | None = None
    dot_number: str = Field(min_length=1)
    truck_info: str | None = None
    dates: list[dt.date] = Field(min_length=1)
    total_amount: int = Field(ge=0)

    @field_validator("first_name", "phone", "dot_number")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("dates")
    @classmethod
    def _unique_sorted(cls, value: list[dt.date]) -> list[dt.date]:
        return sorted(set(value))


class CreateReservationResponse(CamelModel):
    client_secret: str
    confirmation_code: str


class ExtendStayRequest(CamelModel):
    confirmation_code: str = Field(min_length=1)
    phone: str | None = None
    additional_days: int = Field(ge=1, le=30)
    amount: int = Field(gt=0)


class ExtendStayResponse(CamelModel):
    client_secret: str
    confirmation_code: str
    new_dates: list[dt.date]
    new_checkout: str


class AvailabilityResponse(CamelModel):
    date: dt.date
    spots_booked: int
    spots_available: int
    max_spots: int
    is_available: bool


class CalendarDay(CamelModel):
    date: dt.date
    spots_booked: int
    spots_available: int
    is_available: bool
    is_past: bool
    is_selected: bool
    is_selectable: bool


class CalendarResponse(CamelModel):
    year: int
    month: int
    weeks: list[list[CalendarDay | None]]
    selected_dates: list[dt.date]
    total_amount: int
    max_spots: int


class EmailBookingPayload(BaseModel):
    """Forwarded partner email, either pre-parsed into fields or as raw `text`."""

    source: str | None = None
    booking_type: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    email: str | None = None
    check_in: dt.date | None = None
    check_out: dt.date | None = None
    nights: int | None = Field(default=None, ge=1, le=MAX_STAY_DAYS)
    vehicle_type: str | None = None
    dot_number: str | None = None
    mc_number: str | None = None
    amount_paid: Decimal | None = Field(default=None, ge=0)
    confirmation_number: str | None = None
    text: str | None = None


class EmailBookingResponse(BaseModel):
    success: bool
    message: str
    confirmation_code: str | None = None
    dates: list[dt.date] = []
    customer: str | None = None
