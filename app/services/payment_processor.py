# ================================
# PAYMENT PROCESSOR CLIENT (services/payment_processor.py)
# ================================

import httpx
import secrets
import time
from typing import Dict, Any, Optional
import logging

from app.config import settings
from app.core.exceptions import PaymentProcessorError

logger = logging.getLogger(__name__)

# Outcomes after which the transfer is known not to have happened; anything else may have charged
FINAL_FAILURE_CODES = frozenset({"PAYMENT_DECLINED", "PAYMENT_REJECTED", "PROCESSOR_NOT_CONFIGURED"})


def generate_idempotency_id(prefix: str, entity_id: Optional[str] = None) -> str:
    entity_part = f"{entity_id}_" if entity_id else ""
    return f"{prefix}_{entity_part}{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class PaymentProcessorClient:
    """Client for the payment processor's transfers API"""

    def __init__(
        self,
        application_id: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self.base_url = (base_url or settings.PAYMENT_PROCESSOR_BASE_URL).rstrip("/")
        self.application_id = application_id or settings.PAYMENT_PROCESSOR_APPLICATION_ID
        self.api_secret = api_secret or settings.PAYMENT_PROCESSOR_API_SECRET
        self.timeout = settings.PAYMENT_PROCESSOR_TIMEOUT_SECONDS

    def _get_auth(self) -> httpx.BasicAuth:
        if not self.application_id or not self.api_secret:
            raise PaymentProcessorError(
                "Payment processor credentials not configured",
                error_code="PROCESSOR_NOT_CONFIGURED"
            )
        return httpx.BasicAuth(self.application_id, self.api_secret)

    async def create_transfer(
        self,
        merchant_id: str,
        source_instrument_id: str,
        amount_cents: int,
        idempotency_id: str,
        tags: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Charge a tokenized instrument"""
        payload = {
            "merchant": merchant_id,
            "source": source_instrument_id,
            "amount": amount_cents,
            "currency": "USD",
            "idempotency_id": idempotency_id,
            "tags": tags or {}
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/transfers",
                    json=payload,
                    auth=self._get_auth(),
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                logger.error(f"Payment processor error: {e.response.status_code} - {e.response.text}")
                if e.response.status_code == 402:
                    raise PaymentProcessorError("Payment was declined", error_code="PAYMENT_DECLINED")
                if e.response.status_code < 500:
                    raise PaymentProcessorError(
                        f"Payment processor rejected the transfer: {e.response.status_code}",
                        error_code="PAYMENT_REJECTED"
                    )
                raise PaymentProcessorError(
                    f"Payment processor error: {e.response.status_code}",
                    error_code="PROCESSOR_UNAVAILABLE"
                )
            except httpx.RequestError as e:
                logger.error(f"Request error to payment processor: {str(e)}")
                raise PaymentProcessorError(
                    "Failed to connect to payment processor",
                    error_code="PROCESSOR_UNAVAILABLE"
                )


def get_payment_processor() -> PaymentProcessorClient:
    """FastAPI dependency; overridden in tests"""
    return PaymentProcessorClient()
