"""
Unified mobile money (MTN + Airtel) through Relworx
"""
import logging
from typing import Any, Dict, Optional

from app.config.constants import METHOD_MOBILE_MONEY, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.order import Order
from app.models.payment import Payment
from app.services.payments.base import PaymentGateway, InitiationResult, WebhookResult

logger = logging.getLogger(__name__)


STATUS_MAP = {
    "success": PAYMENT_COMPLETED,
    "successful": PAYMENT_COMPLETED,
    "failed": PAYMENT_FAILED,
}


class RelworxGateway(PaymentGateway):
    method = METHOD_MOBILE_MONEY
    name = "Relworx"
    supports_polling = True

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/vnd.relworx.v2",
            "Authorization": f"Bearer {settings.RELWORX_API_KEY}",
        }

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        msisdn, provider = self._require_phone(phone)

        if not 8 <= len(transaction_ref) <= 36:
            raise ValidationError("Reference must be between 8 and 36 characters")

        logger.info(f"[Relworx] Requesting UGX {order.total} from {msisdn} ({provider}) for {order.order_number}")

        async with self._client(settings.RELWORX_API_URL) as client:
            data = await self._send(client, "POST", "/mobile-money/request-payment", headers=self._headers(), json={
                "account_no": settings.RELWORX_ACCOUNT_NO,
                "reference": transaction_ref,
                "msisdn": msisdn,
                "currency": settings.CURRENCY,
                "amount": order.total,
                "description": f"Payment for AgriSupply Order #{order.order_number}",
            })

        return InitiationResult(
            status=PAYMENT_PENDING,
            message="Payment request sent. Please approve on your phone.",
            provider_ref=data.get("internal_reference"),
            phone=msisdn,
            provider=provider,
        )

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        reference = (
            payload.get("customer_reference")
            or payload.get("reference")
            or payload.get("internal_reference")
        )
        raw_status = str(payload.get("status") or "").lower()
        status = STATUS_MAP.get(raw_status)

        return WebhookResult(
            reference=reference,
            status=status,
            provider_transaction_id=payload.get("provider_transaction_id"),
            failure_reason=payload.get("message") if status == PAYMENT_FAILED else None,
        )

    async def check_status(self, payment: Payment) -> WebhookResult:
        async with self._client(settings.RELWORX_API_URL) as client:
            data = await self._send(client, "GET", "/mobile-money/check-request-status", headers=self._headers(), params={
                "internal_reference": payment.provider_reference or payment.transaction_ref,
                "account_no": settings.RELWORX_ACCOUNT_NO,
            })

        result = self.parse_webhook(data)
        result.reference = payment.transaction_ref
        return result
