# ================================
# PAYMENT SERVICE (services/payment_service.py)
# ================================

from typing import Optional, NamedTuple
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.orm import Session
import logging
import uuid

from app.models.business import (
    ServiceApplication, PaymentInstrument, Merchant, ApplicationStatus, InstrumentType, PaymentStatus
)
from app.services.booking_service import BookingService, utcnow
from app.services.fee_calculation_service import FeeCalculationService, calculate_service_fee, validate_total_amount
from app.services.payment_processor import PaymentProcessorClient, generate_idempotency_id, FINAL_FAILURE_CODES
from app.core.exceptions import AppException, NotFoundError, ValidationMismatchError, PaymentProcessorError

logger = logging.getLogger(__name__)


class PendingCharge(NamedTuple):
    merchant_id: str
    source_instrument_id: str
    amount_cents: int
    idempotency_id: str


class PaymentService:
    """Server-side authorization of application payments"""

    @staticmethod
    async def authorize_application_payment(
        db: Session,
        processor: PaymentProcessorClient,
        application_id: uuid.UUID,
        payment_instrument_id: uuid.UUID,
        provided_total_cents: int,
        user_id: uuid.UUID,
        idempotency_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ServiceApplication:
        """
        Charge a draft application after re-deriving its total from trusted records.

        The fee is recomputed from the merchant fee profile and the stored
        instrument type. A total more than the tolerance away from it is
        rejected before the processor is called.

        Runs in three short transactions so no row lock is held during the
        processor call:

        1. validate, re-check the slot, and record the attempt as a pending
           payment together with its idempotency id;
        2. call the processor with that id;
        3. record the transfer and submit the application.

        A retry with the same idempotency id (or without one while the payment
        is still pending) reuses the recorded id, so the processor sees one
        transfer. A retry after completion returns the application unchanged.
        """
        now = now or utcnow()

        application, charge = PaymentService._prepare_charge(
            db, application_id, payment_instrument_id, provided_total_cents, user_id, idempotency_id, now
        )
        if charge is None:
            logger.info(f"Payment for application {application.id} already completed, returning recorded transfer")
            return application

        try:
            transfer = await processor.create_transfer(
                merchant_id=charge.merchant_id,
                source_instrument_id=charge.source_instrument_id,
                amount_cents=charge.amount_cents,
                idempotency_id=charge.idempotency_id,
                tags={"application_id": str(application_id)}
            )
        except PaymentProcessorError as e:
            if e.error_code in FINAL_FAILURE_CODES:
                PaymentService._record_failure(db, application_id, charge.idempotency_id, now)
            else:
                logger.warning(
                    f"Transfer outcome unknown for application {application_id}; "
                    f"payment stays pending under {charge.idempotency_id}"
                )
            raise

        application = PaymentService._complete_charge(db, application_id, charge, transfer, user_id, now)
        logger.info(
            f"Payment authorized for application {application.id}: total={application.total_amount_cents} "
            f"transfer={application.processor_transfer_id}"
        )
        return application

    @staticmethod
    def _prepare_charge(
        db: Session,
        application_id: uuid.UUID,
        payment_instrument_id: uuid.UUID,
        provided_total_cents: int,
        user_id: uuid.UUID,
        idempotency_id: Optional[str],
        now: datetime
    ):
        """Returns (application, charge); charge is None when the payment already went through"""
        try:
            application = BookingService.get_application(db, application_id, for_update=True)

            if application.user_id != user_id:
                raise NotFoundError("Application not found")

            if application.status != ApplicationStatus.DRAFT.value:
                if (
                    idempotency_id
                    and idempotency_id == application.payment_idempotency_id
                    and application.processor_transfer_id
                ):
                    db.commit()
                    return application, None
                raise AppException(
                    f"Application is {application.status} and can no longer be paid",
                    409,
                    "NOT_PAYABLE"
                )
            if not application.base_amount_cents:
                raise AppException("Application has no amount due", 400, "NO_AMOUNT_DUE")

            in_flight = application.payment_status == PaymentStatus.PENDING.value
            if in_flight and idempotency_id and idempotency_id != application.payment_idempotency_id:
                raise AppException("A payment for this application is in progress", 409, "PAYMENT_IN_PROGRESS")

            if idempotency_id:
                key = idempotency_id
            elif in_flight:
                key = application.payment_idempotency_id
            else:
                key = generate_idempotency_id("application", str(application.id))

            taken = db.execute(
                select(ServiceApplication.id).where(
                    ServiceApplication.payment_idempotency_id == key,
                    ServiceApplication.id != application.id
                )
            ).first()
            if taken:
                raise AppException(
                    "Idempotency id already used for another application", 409, "IDEMPOTENCY_KEY_REUSED"
                )

            instrument = db.execute(
                select(PaymentInstrument).where(
                    PaymentInstrument.id == payment_instrument_id,
                    PaymentInstrument.user_id == user_id,
                    PaymentInstrument.is_active.is_(True)
                )
            ).scalar_one_or_none()
            if not instrument:
                raise NotFoundError("Payment instrument not found")

            is_card = instrument.instrument_type == InstrumentType.PAYMENT_CARD.value
            merchant_id = FeeCalculationService.get_tile_merchant_id(db, application.tile_id)
            schedule = FeeCalculationService.get_merchant_fee_schedule(db, merchant_id)

            validation = validate_total_amount(
                application.base_amount_cents, provided_total_cents, is_card, schedule
            )
            if not validation.is_valid:
                logger.warning(
                    f"Total mismatch for application {application.id}: provided={provided_total_cents} "
                    f"expected={validation.expected_total} difference={validation.difference}"
                )
                raise ValidationMismatchError(
                    validation.expected_total, provided_total_cents, validation.difference
                )

            quote = calculate_service_fee(application.base_amount_cents, is_card, schedule)

            # The processor already holds this key bound to the recorded amount
            if in_flight and quote.total_charge_cents != application.total_amount_cents:
                raise AppException("A payment for this application is in progress", 409, "PAYMENT_IN_PROGRESS")

            # Slot may have been taken if this draft outlived the abandonment window
            BookingService.ensure_slot_available(db, application, now)

            merchant = db.get(Merchant, merchant_id) if merchant_id else None
            if not merchant or not merchant.processor_merchant_id:
                raise AppException("Merchant is not set up to accept payments", 400, "MERCHANT_NOT_CONFIGURED")

            # A pending payment holds the slot and is skipped by the sweep
            application.base_amount_cents = quote.base_amount_cents
            application.service_fee_cents = quote.total_service_fee_cents
            application.total_amount_cents = quote.total_charge_cents
            application.payment_status = PaymentStatus.PENDING.value
            application.payment_idempotency_id = key
            application.updated_at = now

            charge = PendingCharge(
                merchant_id=merchant.processor_merchant_id,
                source_instrument_id=instrument.processor_instrument_id,
                amount_cents=quote.total_charge_cents,
                idempotency_id=key
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        return application, charge

    @staticmethod
    def _record_failure(db: Session, application_id: uuid.UUID, idempotency_id: str, now: datetime):
        """Release a pending payment the processor refused"""
        try:
            application = BookingService.get_application(db, application_id, for_update=True)
            if (
                application.payment_status == PaymentStatus.PENDING.value
                and application.payment_idempotency_id == idempotency_id
            ):
                application.payment_status = PaymentStatus.FAILED.value
                application.updated_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Payment for application {application_id} failed under {idempotency_id}")

    @staticmethod
    def _complete_charge(
        db: Session,
        application_id: uuid.UUID,
        charge: PendingCharge,
        transfer: dict,
        user_id: uuid.UUID,
        now: datetime
    ) -> ServiceApplication:
        try:
            application = BookingService.get_application(db, application_id, for_update=True)

            application.processor_transfer_id = transfer.get("id")
            application.payment_status = str(transfer.get("state", "PENDING")).lower()

            # A concurrent retry under the same key may have submitted it already
            if application.status == ApplicationStatus.DRAFT.value:
                # Slot was re-checked and held while the payment was pending
                BookingService.transition(
                    db, application, ApplicationStatus.SUBMITTED, user_id,
                    notes="Payment authorized", now=now, recheck_slot=False
                )
            db.commit()
        except Exception:
            db.rollback()
            logger.error(
                f"Transfer {transfer.get('id')} for application {application_id} not recorded; "
                f"retry with idempotency id {charge.idempotency_id}"
            )
            raise

        db.refresh(application)
        return application
