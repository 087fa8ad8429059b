"""
Capture tool contracts.

Schemas for the arguments specialists pass to the capture tools. These are
the validation boundary in front of the trip context store: anything that
fails here never reaches the store.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tripmate.context.store import Day


CURRENCY_SYMBOLS: Dict[str, str] = {
    "₹": "INR",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
}

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _validate_iso_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not _ISO_DATE.match(value):
        raise ValueError(f"Date must be YYYY-MM-DD, got '{value}'")
    datetime.strptime(value, "%Y-%m-%d")
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CaptureTripParams(BaseModel):
    """
    Sparse trip slot update supplied by a specialist.

    Absent fields are no-ops and present-but-null is the same as absent.
    Types are strict: "2" is not accepted for adults.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        strict=True,
    )

    origin_city: Optional[str] = Field(default=None, description="Departure city")
    destination_city: Optional[str] = Field(default=None, description="Destination city")
    start_date: Optional[str] = Field(default=None, description="Trip start date (YYYY-MM-DD)")
    end_date: Optional[str] = Field(default=None, description="Trip end date (YYYY-MM-DD)")
    adults: Optional[int] = Field(default=None, gt=0, description="Number of adult travelers")
    budget_amount: Optional[float] = Field(
        default=None, gt=0, description="Numeric budget amount only"
    )
    currency: Optional[str] = Field(default=None, description="ISO currency code, e.g. INR, USD")

    @field_validator(
        "origin_city", "destination_city", "start_date", "end_date", "currency",
        mode="before",
    )
    @classmethod
    def _strip_strings(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _iso_dates(cls, value: Optional[str]) -> Optional[str]:
        return _validate_iso_date(value)

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        code = CURRENCY_SYMBOLS.get(value, value.upper())
        if not _CURRENCY_CODE.match(code):
            raise ValueError(f"Currency must be a 3-letter code, got '{value}'")
        return code

    def to_slots(self) -> Dict[str, Any]:
        """Snake_case slot mapping with unset fields dropped."""
        return self.model_dump(exclude_none=True)


class ItineraryDayInput(BaseModel):
    """One day in an itinerary capture payload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    day: Optional[int] = Field(default=None, ge=1)
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    morning: Optional[List[str]] = None
    afternoon: Optional[List[str]] = None
    evening: Optional[List[str]] = None

    @field_validator("date", mode="before")
    @classmethod
    def _blank_date(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: Optional[str]) -> Optional[str]:
        return _validate_iso_date(value)

    def to_day(self) -> Day:
        return Day(
            day=self.day,
            date=self.date,
            morning=[a.strip() for a in self.morning or [] if a and a.strip()],
            afternoon=[a.strip() for a in self.afternoon or [] if a and a.strip()],
            evening=[a.strip() for a in self.evening or [] if a and a.strip()],
        )


class ItineraryCapture(BaseModel):
    """Structured day-by-day itinerary supplied by a specialist."""

    model_config = ConfigDict(extra="forbid")

    days: List[ItineraryDayInput] = Field(description="Ordered day records")

    def to_days(self) -> List[Day]:
        return [d.to_day() for d in self.days]


class ConfirmBookingArgs(BaseModel):
    """Arguments for the booking confirmation tool."""

    model_config = ConfigDict(extra="forbid", strict=True)

    confirm: bool = Field(description="Set true only when the user explicitly confirms")


class DelegateArgs(BaseModel):
    """Arguments for consulting another specialist as a tool."""

    model_config = ConfigDict(extra="forbid")

    request: str = Field(min_length=1, description="What the other specialist should do")
