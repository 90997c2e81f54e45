# ================================
# FEE SCHEMAS (schemas/fees.py)
# ================================

from typing import Any, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.schemas.base import BaseSchema

class FeeSchedule(BaseModel):
    """Merchant rates per payment-method class; immutable for a calculation"""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    card_basis_points: int = Field(default_factory=lambda: settings.DEFAULT_CARD_BASIS_POINTS, ge=0)
    card_fixed_fee_cents: int = Field(default_factory=lambda: settings.DEFAULT_CARD_FIXED_FEE_CENTS, ge=0)
    ach_basis_points: int = Field(default_factory=lambda: settings.DEFAULT_ACH_BASIS_POINTS, ge=0)
    ach_fixed_fee_cents: int = Field(default_factory=lambda: settings.DEFAULT_ACH_FIXED_FEE_CENTS, ge=0)
    ach_basis_points_fee_limit_cents: Optional[int] = Field(None, ge=0)

class FeeQuote(BaseModel):
    """Derived fee breakdown, all amounts in cents"""
    model_config = ConfigDict(frozen=True)

    base_amount_cents: int
    service_fee_percentage_cents: int
    service_fee_fixed_cents: int
    total_service_fee_cents: int
    total_charge_cents: int
    basis_points: int
    is_card: bool

class TotalValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    expected_total: int
    difference: int

class ServiceFeeRequest(BaseSchema):
    """Quote request; wallets (Google Pay, Apple Pay) send payment_method_type='card'"""
    # Checked by the fee engine, invalid amounts answer 400
    base_amount_cents: Any = Field(None, description="Amount owed before fees, in cents")
    payment_method_type: Optional[str] = Field(None, max_length=50)
    payment_instrument_id: Optional[UUID] = None
    merchant_id: Optional[UUID] = None
    tile_id: Optional[UUID] = None

class ServiceFeeResponse(BaseSchema):
    success: bool = True
    base_amount: int
    service_fee: int
    total_amount: int
    is_card: bool
    basis_points: int

    @classmethod
    def from_quote(cls, quote: FeeQuote) -> "ServiceFeeResponse":
        return cls(
            base_amount=quote.base_amount_cents,
            service_fee=quote.total_service_fee_cents,
            total_amount=quote.total_charge_cents,
            is_card=quote.is_card,
            basis_points=quote.basis_points
        )
