"""
Fee Calculation Service

Service fee = (base amount x basis points / 10000, rounded half-up to the cent,
ACH percentage capped by the merchant limit) + fixed fee.
Total charge = base amount + service fee.

This module is the only implementation of the formula. The quote endpoint and
the payment authorization gate both call it.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.models.business import Merchant, MerchantFeeProfile, PaymentInstrument, ServiceTile, InstrumentType
from app.schemas.fees import FeeSchedule, FeeQuote, TotalValidation, ServiceFeeRequest
from app.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

BASIS_POINTS_DIVISOR = Decimal('10000')
CARD_METHOD_TYPES = {"card", InstrumentType.PAYMENT_CARD.value}


def _require_cents(value, field: str) -> int:
    # bool is an int subclass; refuse it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer number of cents")
    if value < 0:
        raise InvalidInputError(f"{field} must not be negative")
    return value


def calculate_service_fee(
    base_amount_cents: int,
    is_card: bool,
    schedule: Optional[FeeSchedule] = None
) -> FeeQuote:
    """
    Compute the service fee and total charge for an amount.

    Args:
        base_amount_cents: Amount owed before fees (integer >= 0)
        is_card: Card schedule when True, ACH schedule otherwise
        schedule: Merchant fee schedule, defaults when omitted

    Returns:
        FeeQuote with total_charge_cents == base_amount_cents + total_service_fee_cents
    """
    base_amount_cents = _require_cents(base_amount_cents, "base_amount_cents")
    schedule = schedule or FeeSchedule()

    if is_card:
        basis_points = schedule.card_basis_points
        fixed_fee_cents = schedule.card_fixed_fee_cents
    else:
        basis_points = schedule.ach_basis_points
        fixed_fee_cents = schedule.ach_fixed_fee_cents

    percentage = (Decimal(base_amount_cents) * Decimal(basis_points)) / BASIS_POINTS_DIVISOR
    percentage_fee_cents = int(percentage.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    # The cap applies to the percentage component only; an unset or zero limit means no cap
    limit = schedule.ach_basis_points_fee_limit_cents
    if not is_card and limit and percentage_fee_cents > limit:
        percentage_fee_cents = limit

    total_service_fee_cents = percentage_fee_cents + fixed_fee_cents

    return FeeQuote(
        base_amount_cents=base_amount_cents,
        service_fee_percentage_cents=percentage_fee_cents,
        service_fee_fixed_cents=fixed_fee_cents,
        total_service_fee_cents=total_service_fee_cents,
        total_charge_cents=base_amount_cents + total_service_fee_cents,
        basis_points=basis_points,
        is_card=is_card
    )


def validate_total_amount(
    base_amount_cents: int,
    provided_total_cents: int,
    is_card: bool,
    schedule: Optional[FeeSchedule] = None
) -> TotalValidation:
    """Compare a client-submitted total with the authoritative computation"""
    quote = calculate_service_fee(base_amount_cents, is_card, schedule)
    provided_total_cents = _require_cents(provided_total_cents, "provided_total_cents")

    difference = abs(provided_total_cents - quote.total_charge_cents)

    return TotalValidation(
        is_valid=difference <= settings.TOTAL_AMOUNT_TOLERANCE_CENTS,
        expected_total=quote.total_charge_cents,
        difference=difference
    )


class FeeCalculationService:
    """Lookups that feed the fee engine from trusted records"""

    @staticmethod
    def get_merchant_fee_schedule(db: Session, merchant_id: Optional[UUID]) -> FeeSchedule:
        """Fee schedule of a merchant; falls back to defaults when the profile can't be read"""
        if merchant_id is None:
            return FeeSchedule()

        try:
            profile = db.execute(
                select(MerchantFeeProfile).where(MerchantFeeProfile.merchant_id == merchant_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Fee profile lookup failed for merchant {merchant_id}, using default schedule: {e}")
            db.rollback()
            return FeeSchedule()

        if not profile:
            logger.warning(f"No fee profile for merchant {merchant_id}, using default schedule")
            return FeeSchedule()

        return FeeSchedule.model_validate(profile)

    @staticmethod
    def get_tile_merchant_id(db: Session, tile_id: Optional[UUID]) -> Optional[UUID]:
        """Merchant of a service tile, else the customer's general merchant"""
        if tile_id is None:
            return None

        tile = db.get(ServiceTile, tile_id)
        if not tile:
            return None
        if tile.merchant_id:
            return tile.merchant_id

        return FeeCalculationService.get_customer_merchant_id(db, tile.customer_id)

    @staticmethod
    def get_customer_merchant_id(db: Session, customer_id: UUID, subcategory: str = "Other") -> Optional[UUID]:
        """Merchant account a customer collects general service fees through"""
        return db.execute(
            select(Merchant.id).where(
                Merchant.customer_id == customer_id,
                Merchant.subcategory == subcategory
            ).limit(1)
        ).scalar_one_or_none()

    @staticmethod
    def resolve_is_card(
        db: Session,
        payment_method_type: Optional[str] = None,
        payment_instrument_id: Optional[UUID] = None
    ) -> bool:
        """Decide card vs ACH; unknown instruments are priced as cards"""
        if payment_method_type:
            return payment_method_type in CARD_METHOD_TYPES

        if payment_instrument_id is None:
            return True

        try:
            instrument_type = db.execute(
                select(PaymentInstrument.instrument_type).where(PaymentInstrument.id == payment_instrument_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Payment instrument lookup failed for {payment_instrument_id}, pricing as card: {e}")
            db.rollback()
            return True

        if instrument_type is None:
            logger.warning(f"Payment instrument {payment_instrument_id} not found, pricing as card")
            return True

        return instrument_type == InstrumentType.PAYMENT_CARD.value

    @staticmethod
    def quote(db: Session, request: ServiceFeeRequest) -> FeeQuote:
        """Quote for the fee endpoint"""
        base_amount_cents = _require_cents(request.base_amount_cents, "base_amount_cents")
        if base_amount_cents == 0:
            raise InvalidInputError("Invalid base amount")

        is_card = FeeCalculationService.resolve_is_card(
            db, request.payment_method_type, request.payment_instrument_id
        )

        merchant_id = request.merchant_id or FeeCalculationService.get_tile_merchant_id(db, request.tile_id)
        schedule = FeeCalculationService.get_merchant_fee_schedule(db, merchant_id)

        quote = calculate_service_fee(base_amount_cents, is_card, schedule)
        logger.info(
            f"Service fee quote: base={quote.base_amount_cents} fee={quote.total_service_fee_cents} "
            f"total={quote.total_charge_cents} card={quote.is_card} bp={quote.basis_points}"
        )
        return quote
