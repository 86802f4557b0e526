"""
Payment gateway strategy contract and shared HTTP plumbing
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.config import settings
from app.core.exceptions import ValidationError, UpstreamProviderError
from app.models.order import Order
from app.models.payment import Payment
from app.utils.helpers import format_phone_number, get_mobile_money_provider

logger = logging.getLogger(__name__)


@dataclass
class InitiationResult:
    status: str  # always 'pending' for now
    message: str
    provider_ref: Optional[str] = None
    payment_url: Optional[str] = None
    phone: Optional[str] = None
    provider: Optional[str] = None


@dataclass
class WebhookResult:
    """
    Provider callback normalised to our vocabulary.

    status is 'completed' / 'failed', or None while the provider still
    reports the payment as in progress.
    """
    reference: Optional[str]
    status: Optional[str]
    provider_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentGateway:
    """
    One strategy per payment method.

    Subclasses implement initiate() and, when the provider calls back,
    parse_webhook(). check_status() is only available where the provider
    exposes a status endpoint (supports_polling).
    """

    method: str = ""
    name: str = "Payment provider"
    supports_polling: bool = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    # ---------- contract ----------

    async def initiate(
        self,
        order: Order,
        transaction_ref: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> InitiationResult:
        raise NotImplementedError

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        raise NotImplementedError(f"{self.name} does not send webhooks")

    async def check_status(self, payment: Payment) -> WebhookResult:
        raise NotImplementedError(f"{self.name} does not support status checks")

    # ---------- helpers ----------

    def _client(self, base_url: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
            transport=self.transport,
        )

    async def _send(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        Perform one provider call and return its JSON body ({} when empty).

        Raises:
            UpstreamProviderError: retryable on timeout, connection error,
                5xx or 429; not retryable on any other 4xx
        """
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"[Payments] Timeout calling {self.name} {url}")
            raise UpstreamProviderError(f"{self.name} timed out", retryable=True)
        except httpx.RequestError as e:
            logger.error(f"[Payments] Connection error calling {self.name}: {str(e)}")
            raise UpstreamProviderError(f"Could not reach {self.name}", retryable=True)

        body = self._json(response)

        if response.status_code >= 400:
            retryable = response.status_code >= 500 or response.status_code == 429
            logger.error(f"[Payments] ❌ {self.name} {url} -> {response.status_code}: {body or response.text[:200]}")
            provider_message = body.get("message") if isinstance(body, dict) else None
            raise UpstreamProviderError(
                f"{self.name} payment request failed",
                details={"providerStatus": response.status_code, "providerMessage": provider_message},
                retryable=retryable,
            )

        return body if isinstance(body, dict) else {}

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _require_phone(phone: Optional[str], expected_provider: Optional[str] = None) -> Tuple[str, str]:
        """
        Normalised phone and its network, checked before any external call.

        Raises:
            ValidationError: missing, malformed, unknown prefix or wrong network
        """
        if not phone:
            raise ValidationError("Phone number is required for mobile money payments")

        formatted = format_phone_number(phone)
        if not formatted:
            raise ValidationError("Invalid phone number format. Use 07XXXXXXXX or +2567XXXXXXXX")

        provider = get_mobile_money_provider(formatted)
        if not provider:
            raise ValidationError("Phone number is not on a supported mobile money network")

        if expected_provider and provider != expected_provider:
            network = "MTN" if "MTN" in expected_provider else "Airtel"
            raise ValidationError(f"Invalid {network} phone number")

        return formatted, provider
