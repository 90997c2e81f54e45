"""
Service Fee API Endpoints

Quotes the service fee and total charge for a payment method.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from app.dependencies import get_db
from app.schemas.fees import ServiceFeeRequest, ServiceFeeResponse
from app.schemas.base import FailureEnvelope
from app.services.fee_calculation_service import FeeCalculationService
from app.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/calculate",
    response_model=ServiceFeeResponse,
    responses={400: {"model": FailureEnvelope}, 500: {"model": FailureEnvelope}}
)
async def calculate_service_fee(
    request: ServiceFeeRequest,
    db: Session = Depends(get_db)
):
    """Calculate the service fee for an amount and payment method (display only, never trusted for charging)"""
    try:
        quote = FeeCalculationService.quote(db, request)
        return ServiceFeeResponse.from_quote(quote)

    except InvalidInputError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=FailureEnvelope(error=e.detail).model_dump()
        )
    except Exception as e:
        logger.error(f"Service fee calculation error: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=FailureEnvelope(error="Failed to calculate service fee").model_dump()
        )
