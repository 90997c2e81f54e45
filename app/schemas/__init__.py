# ================================
# SCHEMAS PACKAGE INITIALIZATION (schemas/__init__.py)
# ================================

"""
Pydantic Schemas Package

Central imports for fee, booking and payment schemas
"""

# Base Schemas
from app.schemas.base import (
    BaseSchema,
    BaseResponseSchema,
    TimestampMixin,
    ErrorResponse,
    FailureEnvelope
)

# Fee Schemas
from app.schemas.fees import (
    FeeSchedule,
    FeeQuote,
    TotalValidation,
    ServiceFeeRequest,
    ServiceFeeResponse
)

# Booking Schemas
from app.schemas.booking import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    BookingCreate,
    BookingResponse,
    BookedSlot,
    ConflictingBooking,
    DailyBooking,
    ApplicationStatusUpdate,
    ApplicationStatusHistoryResponse,
    SweptBooking,
    SweepResult,
    SweepResponse
)

# Payment Schemas
from app.schemas.payment import (
    PaymentAuthorizationRequest,
    PaymentAuthorizationResponse
)

__all__ = [
    "BaseSchema", "BaseResponseSchema", "TimestampMixin", "ErrorResponse", "FailureEnvelope",
    "FeeSchedule", "FeeQuote", "TotalValidation", "ServiceFeeRequest", "ServiceFeeResponse",
    "ConflictCheckRequest", "ConflictCheckResponse", "BookingCreate", "BookingResponse",
    "BookedSlot", "ConflictingBooking", "DailyBooking", "ApplicationStatusUpdate",
    "ApplicationStatusHistoryResponse", "SweptBooking", "SweepResult", "SweepResponse",
    "PaymentAuthorizationRequest", "PaymentAuthorizationResponse"
]
