"""
Payment gateway registry, keyed by payment method
"""
from typing import Dict, Optional, Type

import httpx

from app.core.exceptions import ValidationError
from app.services.payments.base import PaymentGateway, InitiationResult, WebhookResult
from app.services.payments.relworx import RelworxGateway
from app.services.payments.mtn import MTNGateway
from app.services.payments.airtel import AirtelGateway
from app.services.payments.card import CardGateway, verify_webhook_signature
from app.services.payments.cod import CashOnDeliveryGateway


GATEWAYS: Dict[str, Type[PaymentGateway]] = {
    gateway.method: gateway
    for gateway in (RelworxGateway, MTNGateway, AirtelGateway, CardGateway, CashOnDeliveryGateway)
}

# Callback path segment -> method
WEBHOOK_PROVIDERS: Dict[str, str] = {
    "relworx": RelworxGateway.method,
    "mtn": MTNGateway.method,
    "airtel": AirtelGateway.method,
    "card": CardGateway.method,
}


def get_gateway(method: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> PaymentGateway:
    gateway_cls = GATEWAYS.get(method)
    if not gateway_cls:
        raise ValidationError("Invalid payment method")
    return gateway_cls(transport=transport)


__all__ = [
    "PaymentGateway",
    "InitiationResult",
    "WebhookResult",
    "GATEWAYS",
    "WEBHOOK_PROVIDERS",
    "get_gateway",
    "verify_webhook_signature",
]
