from typing import Optional

from app.config.constants import METHOD_COD, PAYMENT_PENDING
from app.models.order import Order
from app.services.payments.base import PaymentGateway, InitiationResult


class CashOnDeliveryGateway(PaymentGateway):
    """No provider: settled when the order is marked delivered"""

    method = METHOD_COD
    name = "Cash on Delivery"

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        return InitiationResult(
            status=PAYMENT_PENDING,
            message="Cash on delivery selected. Pay when you receive your order.",
            provider_ref=transaction_ref,
        )
