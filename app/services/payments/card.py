"""
Card payments via Flutterwave hosted checkout
"""
import hmac
import logging
from typing import Any, Dict, Optional

from app.config.constants import METHOD_CARD, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from app.core.config import settings
from app.models.order import Order
from app.models.payment import Payment
from app.services.payments.base import PaymentGateway, InitiationResult, WebhookResult

logger = logging.getLogger(__name__)


STATUS_MAP = {
    "successful": PAYMENT_COMPLETED,
    "failed": PAYMENT_FAILED,
}


def verify_webhook_signature(signature: Optional[str]) -> bool:
    """Flutterwave echoes the configured secret hash in `verif-hash`"""
    expected = settings.FLUTTERWAVE_WEBHOOK_HASH
    if not expected:
        return True
    return bool(signature) and hmac.compare_digest(signature, expected)


class CardGateway(PaymentGateway):
    method = METHOD_CARD
    name = "Flutterwave"
    supports_polling = True

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.FLUTTERWAVE_SECRET_KEY}",
            "Content-Type": "application/json",
        }

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        address = order.shipping_address or {}

        async with self._client(settings.FLUTTERWAVE_API_URL) as client:
            data = await self._send(client, "POST", "/payments", headers=self._headers(), json={
                "tx_ref": transaction_ref,
                "amount": order.total,
                "currency": settings.CURRENCY,
                "redirect_url": f"{settings.FRONTEND_URL}/payment/callback",
                "payment_options": "card",
                "customer": {
                    "email": email,
                    "name": address.get("name") or "Customer",
                    "phonenumber": address.get("phone") or phone,
                },
                "customizations": {
                    "title": "AgriSupply",
                    "description": f"Payment for Order #{order.order_number}",
                },
                "meta": {
                    "order_id": order.id,
                    "order_number": order.order_number,
                },
            })

        link = (data.get("data") or {}).get("link")
        logger.info(f"[Card] Checkout link created for {order.order_number}")

        return InitiationResult(
            status=PAYMENT_PENDING,
            message="Redirect to payment page",
            provider_ref=transaction_ref,
            payment_url=link,
        )

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        data = payload.get("data") or {}

        # Only charge.completed carries a final charge status
        if payload.get("event") != "charge.completed":
            return WebhookResult(reference=data.get("tx_ref"), status=None)

        status = STATUS_MAP.get(str(data.get("status") or "").lower())
        return WebhookResult(
            reference=data.get("tx_ref"),
            status=status,
            provider_transaction_id=data.get("flw_ref"),
            failure_reason=data.get("processor_response") if status == PAYMENT_FAILED else None,
        )

    async def check_status(self, payment: Payment) -> WebhookResult:
        async with self._client(settings.FLUTTERWAVE_API_URL) as client:
            data = await self._send(
                client,
                "GET",
                "/transactions/verify_by_reference",
                headers=self._headers(),
                params={"tx_ref": payment.transaction_ref},
            )

        result = self.parse_webhook({"event": "charge.completed", "data": data.get("data") or {}})
        result.reference = payment.transaction_ref
        return result
