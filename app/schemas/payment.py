# ================================
# PAYMENT SCHEMAS (schemas/payment.py)
# ================================

from typing import Optional
from pydantic import Field, StrictInt
import uuid

from app.schemas.base import BaseSchema

class PaymentAuthorizationRequest(BaseSchema):
    application_id: uuid.UUID
    payment_instrument_id: uuid.UUID
    total_amount_cents: StrictInt = Field(..., gt=0, description="Total the client displayed and the user accepted")
    idempotency_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Client key for retries; the same key never charges twice"
    )

class PaymentAuthorizationResponse(BaseSchema):
    success: bool = True
    application_id: uuid.UUID
    status: str
    payment_status: Optional[str] = None
    base_amount_cents: int
    service_fee_cents: int
    total_amount_cents: int
    transfer_id: Optional[str] = None
