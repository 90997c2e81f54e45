# ================================
# PAYMENT API ROUTES (api/v1/payments.py)
# ================================

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import uuid

from app.dependencies import get_db, get_current_user_id
from app.services.payment_processor import PaymentProcessorClient, get_payment_processor
from app.services.payment_service import PaymentService
from app.schemas.payment import PaymentAuthorizationRequest, PaymentAuthorizationResponse

router = APIRouter()

@router.post("/authorize", response_model=PaymentAuthorizationResponse)
async def authorize_payment(
    data: PaymentAuthorizationRequest,
    db: Session = Depends(get_db),
    processor: PaymentProcessorClient = Depends(get_payment_processor),
    current_user_id: uuid.UUID = Depends(get_current_user_id)
):
    """Verify the submitted total against the server-side fee and charge the application"""
    application = await PaymentService.authorize_application_payment(
        db=db,
        processor=processor,
        application_id=data.application_id,
        payment_instrument_id=data.payment_instrument_id,
        provided_total_cents=data.total_amount_cents,
        user_id=current_user_id,
        idempotency_id=data.idempotency_id
    )

    return PaymentAuthorizationResponse(
        application_id=application.id,
        status=application.status,
        payment_status=application.payment_status,
        base_amount_cents=application.base_amount_cents,
        service_fee_cents=application.service_fee_cents,
        total_amount_cents=application.total_amount_cents,
        transfer_id=application.processor_transfer_id
    )
