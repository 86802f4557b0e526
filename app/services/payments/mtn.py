"""
MTN MoMo collections (legacy direct integration)
"""
import base64
import logging
import uuid
from typing import Any, Dict, Optional

from app.config.constants import METHOD_MTN, PROVIDER_MTN, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from app.core.config import settings
from app.models.order import Order
from app.models.payment import Payment
from app.services.payments.base import PaymentGateway, InitiationResult, WebhookResult

logger = logging.getLogger(__name__)


STATUS_MAP = {
    "SUCCESSFUL": PAYMENT_COMPLETED,
    "FAILED": PAYMENT_FAILED,
    "REJECTED": PAYMENT_FAILED,
    "TIMEOUT": PAYMENT_FAILED,
}


class MTNGateway(PaymentGateway):
    method = METHOD_MTN
    name = "MTN Mobile Money"
    supports_polling = True

    async def _token(self, client) -> str:
        credentials = base64.b64encode(
            f"{settings.MTN_API_KEY}:{settings.MTN_API_SECRET}".encode()
        ).decode()
        data = await self._send(client, "POST", "/collection/token/", headers={
            "Authorization": f"Basic {credentials}",
            "Ocp-Apim-Subscription-Key": settings.MTN_SUBSCRIPTION_KEY,
        })
        return data.get("access_token", "")

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Target-Environment": settings.MTN_ENVIRONMENT,
            "Ocp-Apim-Subscription-Key": settings.MTN_SUBSCRIPTION_KEY,
            "Content-Type": "application/json",
        }

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        msisdn, provider = self._require_phone(phone, expected_provider=PROVIDER_MTN)

        # MoMo requires a UUID per request; our reference travels as externalId
        reference_id = str(uuid.uuid4())

        async with self._client(settings.MTN_API_URL) as client:
            token = await self._token(client)
            headers = self._headers(token)
            headers["X-Reference-Id"] = reference_id

            await self._send(client, "POST", "/collection/v1_0/requesttopay", headers=headers, json={
                "amount": str(order.total),
                "currency": settings.CURRENCY,
                "externalId": transaction_ref,
                "payer": {
                    "partyIdType": "MSISDN",
                    "partyId": msisdn.replace("+", ""),
                },
                "payerMessage": f"Payment for AgriSupply Order #{order.order_number}",
                "payeeNote": f"Order #{order.order_number}",
            })

        logger.info(f"[MTN] Request-to-pay {reference_id} sent for {order.order_number}")

        return InitiationResult(
            status=PAYMENT_PENDING,
            message="Payment request sent. Please approve on your phone.",
            provider_ref=reference_id,
            phone=msisdn,
            provider=provider,
        )

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        raw_status = str(payload.get("status") or "").upper()
        status = STATUS_MAP.get(raw_status)
        reason = payload.get("reason")
        if isinstance(reason, dict):
            reason = reason.get("message") or reason.get("code")

        return WebhookResult(
            reference=payload.get("externalId"),
            status=status,
            provider_transaction_id=payload.get("financialTransactionId"),
            failure_reason=reason if status == PAYMENT_FAILED else None,
        )

    async def check_status(self, payment: Payment) -> WebhookResult:
        async with self._client(settings.MTN_API_URL) as client:
            token = await self._token(client)
            data = await self._send(
                client,
                "GET",
                f"/collection/v1_0/requesttopay/{payment.provider_reference}",
                headers=self._headers(token),
            )

        result = self.parse_webhook(data)
        result.reference = payment.transaction_ref
        return result
