import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .core.config import get_settings

_TIME_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*(am|pm)?")


class BookingStatus(str, Enum):
    PENDING = "pending"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    TEST = "test"


class BookingSource(str, Enum):
    WEB = "web"
    PHONE = "phone"


def normalize_time(value: str) -> str:
    """Normalize '15:00', '15:00:00', '3pm' or '3:30 PM' to 24-hour 'HH:MM'."""
    text = value.strip().lower().replace(".", "")
    match = _TIME_PATTERN.fullmatch(text)
    if not match:
        raise ValueError("Time must be in HH:MM format (24-hour) or like '3:30 PM'")

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    second = int(match.group(3) or 0)
    meridiem = match.group(4)

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError("Hour must be between 1 and 12 when using AM/PM")
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    elif match.group(2) is None:
        # A bare "15" is ambiguous
        raise ValueError("Time must be in HH:MM format (24-hour) or like '3:30 PM'")

    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise ValueError("Time must be in HH:MM format (24-hour) or like '3:30 PM'")
    return f"{hour:02d}:{minute:02d}"


def booking_id_for(business_id: str, date_str: str, time_str: str) -> str:
    """
    Deterministic Firestore document id for a business/date/time slot.
    Format: {business-slug}_{YYYY-MM-DD}_{HHMM}
    """
    slug = re.sub(r"[\s/]+", "-", business_id.strip().lower()).strip("-") or "business"
    return f"{slug}_{date_str}_{time_str.replace(':', '')}"


class BookingRequest(BaseModel):
    """
    Booking attempt from the web form or a voice-assistant tool call.

    Accepts camelCase, snake_case, and the field names voice assistants
    commonly emit (customerName, phoneNumber, ...).
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    business_id: str = Field(validation_alias=AliasChoices("businessId", "business_id"))
    name: str = Field(
        max_length=100,
        validation_alias=AliasChoices("name", "customerName", "customer_name"),
    )
    phone: str = Field(
        max_length=32,
        validation_alias=AliasChoices("phone", "phoneNumber", "phone_number", "customerPhone", "customer_phone"),
    )
    email: Optional[str] = Field(
        None,
        max_length=255,
        validation_alias=AliasChoices("email", "customerEmail", "customer_email"),
    )
    service: Optional[str] = Field(
        None,
        max_length=100,
        validation_alias=AliasChoices("service", "serviceName", "service_name"),
    )
    date: Optional[str] = Field(
        None,
        description="Date in YYYY-MM-DD format",
        validation_alias=AliasChoices("date", "preferredDate", "preferred_date"),
    )
    time: Optional[str] = Field(
        None,
        description="Time in HH:MM format 24-hour",
        validation_alias=AliasChoices("time", "preferredTime", "preferred_time"),
    )
    notes: Optional[str] = Field(None, max_length=2000)
    source: BookingSource = BookingSource.WEB
    call_id: Optional[str] = Field(None, validation_alias=AliasChoices("callId", "call_id"))
    transcript: Optional[str] = None

    @field_validator("business_id", "name", "phone", mode="before")
    @classmethod
    def require_text(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise PydanticCustomError("missing", "Field required")
        return v

    @field_validator("email", "service", "date", "time", "notes", "call_id", "transcript", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            parsed = datetime.strptime(v, "%Y-%m-%d").date()
        except ValueError:
            raise ValueError("Date must be in YYYY-MM-DD format")
        if parsed < business_today():
            raise ValueError("Date cannot be in the past")
        return parsed.isoformat()

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return normalize_time(v)

    @model_validator(mode="after")
    def validate_slot(self):
        if bool(self.date) != bool(self.time):
            raise ValueError("Both date and time are required to reserve a slot.")
        return self

    @property
    def has_slot(self) -> bool:
        return bool(self.date and self.time)


class BookingRecord(BaseModel):
    """Booking document as stored in Firestore (camelCase keys)."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    business_id: str
    name: str
    phone: str
    email: Optional[str] = None
    service: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    source: BookingSource = BookingSource.WEB
    call_id: Optional[str] = None
    transcript: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_request(
        cls,
        request: BookingRequest,
        status: BookingStatus,
        now: Optional[datetime] = None,
    ) -> "BookingRecord":
        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        return cls(
            business_id=request.business_id,
            name=request.name,
            phone=request.phone,
            email=request.email,
            service=request.service,
            date=request.date,
            time=request.time,
            notes=request.notes,
            status=status,
            source=request.source,
            call_id=request.call_id,
            transcript=request.transcript,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def business_today() -> date:
    return datetime.now(ZoneInfo(get_settings().business_timezone)).date()
