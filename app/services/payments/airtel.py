"""
Airtel Money merchant payments (legacy direct integration)
"""
import logging
from typing import Any, Dict, Optional

from app.config.constants import METHOD_AIRTEL, PROVIDER_AIRTEL, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from app.core.config import settings
from app.models.order import Order
from app.models.payment import Payment
from app.services.payments.base import PaymentGateway, InitiationResult, WebhookResult

logger = logging.getLogger(__name__)


# TS = success, TF = failed; TIP (in progress) and TA (ambiguous) stay pending
STATUS_MAP = {
    "TS": PAYMENT_COMPLETED,
    "TF": PAYMENT_FAILED,
}


class AirtelGateway(PaymentGateway):
    method = METHOD_AIRTEL
    name = "Airtel Money"
    supports_polling = True

    async def _token(self, client) -> str:
        data = await self._send(client, "POST", "/auth/oauth2/token", json={
            "client_id": settings.AIRTEL_API_KEY,
            "client_secret": settings.AIRTEL_API_SECRET,
            "grant_type": "client_credentials",
        })
        return data.get("access_token", "")

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-Country": "UG",
            "X-Currency": settings.CURRENCY,
        }

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        msisdn, provider = self._require_phone(phone, expected_provider=PROVIDER_AIRTEL)

        async with self._client(settings.AIRTEL_API_URL) as client:
            token = await self._token(client)
            data = await self._send(client, "POST", "/merchant/v1/payments/", headers=self._headers(token), json={
                "reference": transaction_ref,
                "subscriber": {
                    "country": "UG",
                    "currency": settings.CURRENCY,
                    "msisdn": msisdn.replace("+256", ""),
                },
                "transaction": {
                    "amount": order.total,
                    "country": "UG",
                    "currency": settings.CURRENCY,
                    "id": transaction_ref,
                },
            })

        transaction = (data.get("data") or {}).get("transaction") or {}
        logger.info(f"[Airtel] Payment request sent for {order.order_number}")

        return InitiationResult(
            status=PAYMENT_PENDING,
            message="Payment request sent. Please approve on your phone.",
            provider_ref=transaction.get("id") or transaction_ref,
            phone=msisdn,
            provider=provider,
        )

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        transaction = payload.get("transaction") or {}
        raw_status = str(transaction.get("status_code") or transaction.get("status") or "").upper()
        status = STATUS_MAP.get(raw_status)

        return WebhookResult(
            reference=transaction.get("id"),
            status=status,
            provider_transaction_id=transaction.get("airtel_money_id"),
            failure_reason=transaction.get("message") if status == PAYMENT_FAILED else None,
        )

    async def check_status(self, payment: Payment) -> WebhookResult:
        async with self._client(settings.AIRTEL_API_URL) as client:
            token = await self._token(client)
            data = await self._send(
                client,
                "GET",
                f"/standard/v1/payments/{payment.transaction_ref}",
                headers=self._headers(token),
            )

        result = self.parse_webhook(data.get("data") or {})
        result.reference = payment.transaction_ref
        return result
