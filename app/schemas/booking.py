# ================================
# BOOKING SCHEMAS (schemas/booking.py)
# ================================

from typing import Optional, List
from datetime import date, datetime
from pydantic import Field, field_validator, model_validator
import re
import uuid

from app.models.business import ApplicationStatus
from app.schemas.base import BaseSchema, BaseResponseSchema, TimestampMixin

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')

def normalize_time(value: str) -> str:
    """Bring a 24-hour time to zero-padded HH:MM:SS so that string order equals time order"""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError('Time must be a 24-hour HH:MM or HH:MM:SS value')
    hours, minutes, seconds = match.group(1), match.group(2), match.group(3) or "00"
    return f"{hours}:{minutes}:{seconds}"

class TimeRangeMixin(BaseSchema):
    """Validated half-open [start_time, end_time) range on one day"""
    booking_date: date
    start_time: str = Field(..., description="Start time, HH:MM[:SS]")
    end_time: str = Field(..., description="End time, HH:MM[:SS]")

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode='after')
    def validate_range(self):
        if not self.start_time < self.end_time:
            raise ValueError('start_time must be before end_time')
        return self

class ConflictCheckRequest(TimeRangeMixin):
    tile_id: uuid.UUID
    exclude_application_id: Optional[uuid.UUID] = None

class BookingCreate(TimeRangeMixin):
    tile_id: uuid.UUID
    applicant_name: Optional[str] = Field(None, max_length=255)
    applicant_email: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

class BookedSlot(BaseSchema):
    """Slot currently holding a resource"""
    id: uuid.UUID
    booking_date: date
    booking_start_time: str
    booking_end_time: Optional[str] = None
    status: str

class ConflictingBooking(BookedSlot):
    applicant_name: Optional[str] = None

class ConflictCheckResponse(BaseSchema):
    has_conflict: bool
    conflicting_bookings: List[ConflictingBooking] = []

class DailyBooking(ConflictingBooking):
    tile_id: uuid.UUID
    payment_status: Optional[str] = None
    applicant_email: Optional[str] = None

class ApplicationStatusUpdate(BaseSchema):
    status: ApplicationStatus
    notes: Optional[str] = None

class ApplicationStatusHistoryResponse(BaseResponseSchema):
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[uuid.UUID] = None
    changed_at: datetime
    notes: Optional[str] = None

class BookingResponse(BaseResponseSchema, TimestampMixin):
    tile_id: uuid.UUID
    user_id: uuid.UUID
    customer_id: uuid.UUID
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    booking_date: Optional[date] = None
    booking_start_time: Optional[str] = None
    booking_end_time: Optional[str] = None
    status: str
    payment_status: Optional[str] = None
    base_amount_cents: Optional[int] = None
    service_fee_cents: Optional[int] = None
    total_amount_cents: Optional[int] = None
    notes: Optional[str] = None
    status_history: List[ApplicationStatusHistoryResponse] = []

class SweptBooking(BaseSchema):
    id: uuid.UUID
    booking_date: Optional[date] = None
    booking_start_time: Optional[str] = None

class SweepResult(BaseSchema):
    expired_count: int
    expired_ids: List[uuid.UUID] = []
    bookings: List[SweptBooking] = []

class SweepResponse(BaseSchema):
    success: bool = True
    expired: int
    message: str
    bookings: List[SweptBooking] = []
