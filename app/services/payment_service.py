"""
Payment service: initiation, webhook reconciliation, polling and refunds

Provider specifics live in app.services.payments; this module owns the
Payment rows and keeps Order.payment_status in step with them.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.config.constants import (
    ORDER_CANCELLED,
    ORDER_REFUNDED,
    PAYMENT_PENDING,
    PAYMENT_PROCESSING,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
    TERMINAL_PAYMENT_STATUSES,
    METHOD_MOBILE_MONEY,
    METHOD_MTN,
    METHOD_AIRTEL,
    METHOD_CARD,
    METHOD_COD,
)
from app.core.config import settings
from app.core.exceptions import NotFound, Forbidden, ValidationError, InvalidState
from app.models.order import Order, OrderStatusHistory
from app.models.payment import Payment, Refund
from app.models.user import User
from app.schemas.payment import PaymentResponse, RefundResponse
from app.services.notification_service import NotificationService
from app.services.order_service import can_view_order
from app.services.payments import get_gateway, WebhookResult
from app.utils.helpers import generate_transaction_ref, paginate, pagination_response

logger = logging.getLogger(__name__)


def serialize_payment(payment: Payment) -> Dict[str, Any]:
    return PaymentResponse.model_validate(payment).model_dump(mode="json")


def get_payment_methods() -> List[Dict[str, Any]]:
    return [
        {
            "id": METHOD_MOBILE_MONEY,
            "name": "Mobile Money",
            "icon": "mobile",
            "description": "Pay with MTN or Airtel Mobile Money",
            "phonePrefixes": settings.MTN_PREFIXES + settings.AIRTEL_PREFIXES,
        },
        {
            "id": METHOD_MTN,
            "name": "MTN Mobile Money",
            "icon": "mtn",
            "description": "Pay with MTN Mobile Money",
            "phonePrefixes": settings.MTN_PREFIXES,
        },
        {
            "id": METHOD_AIRTEL,
            "name": "Airtel Money",
            "icon": "airtel",
            "description": "Pay with Airtel Money",
            "phonePrefixes": settings.AIRTEL_PREFIXES,
        },
        {
            "id": METHOD_CARD,
            "name": "Card Payment",
            "icon": "card",
            "description": "Pay with Visa or Mastercard",
        },
        {
            "id": METHOD_COD,
            "name": "Cash on Delivery",
            "icon": "cash",
            "description": "Pay when you receive your order",
        },
    ]


class PaymentService:
    def __init__(
        self,
        db: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.db = db
        self.transport = transport
        self.notifications = notifications or NotificationService(db)

    # ========================================
    # INITIATION
    # ========================================

    async def initiate(
        self,
        user: User,
        order_id: int,
        method: str,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Start a payment for one of the buyer's orders.

        The provider is called first; the Payment row is only written once
        it accepted the request, so a provider error leaves nothing behind.

        Raises:
            NotFound: order missing or not the caller's
            InvalidState: already paid, cancelled, refunded or a payment is pending
            ValidationError: bad method or phone
            UpstreamProviderError: the provider call failed
        """
        order = self.db.query(Order).filter(
            Order.id == order_id,
            Order.buyer_id == user.id
        ).first()

        if not order:
            raise NotFound("Order not found")
        if order.payment_status == PAYMENT_COMPLETED:
            raise InvalidState("Order already paid")
        if order.status in (ORDER_CANCELLED, ORDER_REFUNDED) or order.payment_status == PAYMENT_REFUNDED:
            raise InvalidState(f"Cannot pay for a {order.status} order")

        # one live payment per order
        last = self._latest_payment(order.id)
        if last and last.status == PAYMENT_PENDING:
            raise InvalidState(f"Payment {last.transaction_ref} is still pending for this order")

        gateway = get_gateway(method, transport=self.transport)
        transaction_ref = generate_transaction_ref()

        logger.info(f"[Payments] Initiating {method} for {order.order_number} ({transaction_ref})")
        result = await gateway.initiate(order, transaction_ref, phone=phone, email=email or user.email)

        try:
            payment = Payment(
                order_id=order.id,
                user_id=user.id,
                amount=order.total,
                method=method,
                transaction_ref=transaction_ref,
                provider_reference=result.provider_ref,
                phone=result.phone,
                provider=result.provider,
                status=PAYMENT_PENDING,
            )
            self.db.add(payment)

            order.payment_method = method
            order.payment_status = PAYMENT_PENDING if method == METHOD_COD else PAYMENT_PROCESSING

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"[Payments] ✅ {transaction_ref} pending with {gateway.name} (provider ref {result.provider_ref})")

        return {
            "message": result.message,
            "data": {
                "transactionRef": transaction_ref,
                "status": result.status,
                "providerRef": result.provider_ref,
                "paymentUrl": result.payment_url,
            },
        }

    async def retry(
        self,
        user: User,
        order_id: int,
        method: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Dict[str, Any]:
        """New attempt after a failed one; defaults to the order's current method"""
        order = self.db.query(Order).filter(
            Order.id == order_id,
            Order.buyer_id == user.id
        ).first()
        if not order:
            raise NotFound("Order not found")

        last = self._latest_payment(order.id)
        if last and last.status != PAYMENT_FAILED:
            raise InvalidState(f"Latest payment is {last.status}, only failed payments can be retried")

        return await self.initiate(user, order.id, method or order.payment_method, phone=phone)

    # ========================================
    # WEBHOOKS / POLLING
    # ========================================

    def handle_webhook(self, method: str, payload: Dict[str, Any]) -> Optional[Payment]:
        """
        Apply a provider callback.

        Unknown references, in-progress statuses and replays are no-ops;
        the caller answers 200 in every one of those cases.
        """
        gateway = get_gateway(method)
        result = gateway.parse_webhook(payload)

        if not result.reference:
            logger.warning(f"[Webhook] {gateway.name} callback without reference ignored")
            return None

        return self.apply_result(result, lookup_provider_reference=True)

    def apply_result(self, result: WebhookResult, lookup_provider_reference: bool = False) -> Optional[Payment]:
        """Normalised status -> Payment -> Order.payment_status -> buyer notification"""
        try:
            query = self.db.query(Payment)
            if lookup_provider_reference:
                query = query.filter(or_(
                    Payment.transaction_ref == result.reference,
                    Payment.provider_reference == result.reference,
                ))
            else:
                query = query.filter(Payment.transaction_ref == result.reference)
            payment = query.with_for_update().first()

            if not payment:
                logger.info(f"[Webhook] Unknown reference {result.reference}, ignoring")
                self.db.rollback()
                return None

            if result.status is None:
                logger.info(f"[Webhook] {payment.transaction_ref} still in progress")
                self.db.rollback()
                return payment

            if payment.status == result.status:
                logger.info(f"[Webhook] {payment.transaction_ref} already {payment.status}, replay ignored")
                self.db.rollback()
                return payment

            if payment.status in TERMINAL_PAYMENT_STATUSES:
                logger.warning(
                    f"[Webhook] ⚠️ {payment.transaction_ref} is {payment.status}, "
                    f"ignoring late {result.status}"
                )
                self.db.rollback()
                return payment

            now = datetime.now(timezone.utc)
            payment.status = result.status
            if result.provider_transaction_id:
                payment.provider_transaction_id = result.provider_transaction_id
            if result.status == PAYMENT_COMPLETED:
                payment.completed_at = now
            else:
                payment.failure_reason = result.failure_reason

            order = self.db.query(Order).filter(Order.id == payment.order_id).with_for_update().first()
            order_settled = order.payment_status in (PAYMENT_COMPLETED, PAYMENT_REFUNDED)
            if order_settled:
                logger.warning(
                    f"[Webhook] ⚠️ {order.order_number} already {order.payment_status}, "
                    f"{payment.transaction_ref} -> {result.status} not applied to the order"
                )
            else:
                order.payment_status = result.status

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"[Webhook] ✅ {payment.transaction_ref} -> {payment.status} (order {order.order_number})")

        if payment.status == PAYMENT_COMPLETED:
            self.notifications.emit(
                order.buyer_id,
                "payment_received",
                f"Payment for order #{order.order_number} was successful",
                data={"orderId": order.id, "transactionRef": payment.transaction_ref},
            )
        elif not order_settled:
            self.notifications.emit(
                order.buyer_id,
                "payment_failed",
                f"Payment for order #{order.order_number} failed. Please try again.",
                data={"orderId": order.id, "transactionRef": payment.transaction_ref},
            )
        self.notifications.flush()

        return payment

    async def verify(self, user: User, transaction_ref: str) -> Dict[str, Any]:
        """
        Poll the provider for a pending payment.

        Provider errors propagate; a non-final answer leaves the payment as is.
        """
        payment = self.db.query(Payment).filter(Payment.transaction_ref == transaction_ref).first()
        if not payment:
            raise NotFound("Payment not found")
        if payment.user_id != user.id and not user.is_admin:
            raise Forbidden("Not authorized to view this payment")

        if payment.status == PAYMENT_PENDING:
            gateway = get_gateway(payment.method, transport=self.transport)
            if gateway.supports_polling:
                result = await gateway.check_status(payment)
                self.apply_result(result)
                self.db.refresh(payment)

        return serialize_payment(payment)

    # ========================================
    # READS
    # ========================================

    def _latest_payment(self, order_id: int) -> Optional[Payment]:
        return self.db.query(Payment).filter(
            Payment.order_id == order_id
        ).order_by(Payment.id.desc()).first()

    def get_status(self, user: User, order_id: int) -> Dict[str, Any]:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if not can_view_order(order, user):
            raise Forbidden("Not authorized to view this order")

        payment = self._latest_payment(order.id)
        if not payment:
            raise NotFound("Payment not found")
        return serialize_payment(payment)

    def get_history(self, user: User, page: Any = 1, limit: Any = None) -> Dict[str, Any]:
        pages = paginate(page, limit)

        query = self.db.query(Payment).filter(Payment.user_id == user.id)
        total = query.count()
        payments = query.options(joinedload(Payment.order)).order_by(
            Payment.created_at.desc(), Payment.id.desc()
        ).offset(pages["offset"]).limit(pages["limit"]).all()

        data = []
        for payment in payments:
            row = serialize_payment(payment)
            row["order"] = {
                "order_number": payment.order.order_number,
                "status": payment.order.status,
            }
            data.append(row)

        return pagination_response(data, total, pages["page"], pages["limit"])

    # ========================================
    # REFUNDS
    # ========================================

    def refund(
        self,
        admin: User,
        order_id: int,
        amount: Optional[int] = None,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record a refund against the order's latest payment.

        Raises:
            Forbidden: caller is not an admin
            NotFound: order or payment missing
            InvalidState: the payment is not completed
            ValidationError: amount outside 1..payment.amount
        """
        if not admin.is_admin:
            raise Forbidden("Only admins can process refunds")

        try:
            order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
            if not order:
                raise NotFound("Order not found")

            payment = self.db.query(Payment).filter(
                Payment.order_id == order.id
            ).order_by(Payment.id.desc()).with_for_update().first()
            if not payment:
                raise NotFound("Payment not found")
            if payment.status != PAYMENT_COMPLETED:
                raise InvalidState(f"Cannot refund a {payment.status} payment")

            refund_amount = payment.amount if amount is None else amount
            if refund_amount < 1 or refund_amount > payment.amount:
                raise ValidationError(f"Refund amount must be between 1 and {payment.amount}")

            refund = Refund(
                payment_id=payment.id,
                order_id=order.id,
                user_id=order.buyer_id,
                amount=refund_amount,
                reason=reason,
                status="processed",
                processed_by=admin.id,
            )
            self.db.add(refund)

            payment.status = PAYMENT_REFUNDED
            order.status = ORDER_REFUNDED
            order.payment_status = PAYMENT_REFUNDED
            order.refund_requested = False
            self.db.add(OrderStatusHistory(
                order_id=order.id,
                status=ORDER_REFUNDED,
                note=reason or f"Refund of UGX {refund_amount:,}",
                changed_by=admin.id,
            ))

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(refund)
        logger.info(f"[Payments] Refund #{refund.id} of UGX {refund_amount} on {order.order_number} by admin {admin.id}")

        self.notifications.emit(
            order.buyer_id,
            "refund_processed",
            f"Refund of UGX {refund_amount:,} for order #{order.order_number} has been processed",
            data={"orderId": order.id, "amount": refund_amount},
        )
        self.notifications.flush()

        return RefundResponse.model_validate(refund).model_dump(mode="json")
