"""
Order state machine

Each farmer moves their own items pending -> confirmed -> shipped; the
parent order status is derived from all items. Delivery and cancellation act
on the whole order and cascade down to every item.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config.constants import (
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
    TERMINAL_ORDER_STATUSES,
    PAYMENT_PENDING,
    PAYMENT_COMPLETED,
    METHOD_COD,
)
from app.core.exceptions import NotFound, Forbidden, ValidationError, InvalidTransition, InvalidState
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.payment import Payment
from app.models.user import User
from app.services.inventory_service import InventoryService
from app.services.notification_service import NotificationService
from app.utils.helpers import generate_tracking_number

logger = logging.getLogger(__name__)


STATUS_RANK = {
    ORDER_PENDING: 0,
    ORDER_CONFIRMED: 1,
    ORDER_SHIPPED: 2,
    ORDER_DELIVERED: 3,
}

# Values accepted by PUT /orders/{id}/status
SETTABLE_STATUSES = [ORDER_CONFIRMED, ORDER_SHIPPED, ORDER_DELIVERED, ORDER_CANCELLED]


def derive_order_status(current: str, item_statuses: Iterable[str]) -> str:
    """
    Parent status implied by the item statuses.

    Terminal statuses are never touched, and the result never ranks below
    `current`: a late read of the items cannot move an order backwards.
    """
    if current in TERMINAL_ORDER_STATUSES:
        return current

    statuses = [s for s in item_statuses if s != ORDER_CANCELLED]
    if not statuses:
        return current

    if all(s in (ORDER_SHIPPED, ORDER_DELIVERED) for s in statuses):
        derived = ORDER_SHIPPED
    elif all(s != ORDER_PENDING for s in statuses):
        derived = ORDER_CONFIRMED
    else:
        derived = ORDER_PENDING

    if STATUS_RANK[derived] > STATUS_RANK.get(current, 0):
        return derived
    return current


def _now():
    return datetime.now(timezone.utc)


class OrderStateMachine:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.notifications = notifications or NotificationService(db)

    # ========================================
    # HELPERS
    # ========================================

    def _lock_order(self, order_id: int) -> Order:
        """Row lock held until commit; serializes transitions on one order"""
        order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFound("Order not found")
        return order

    def _items(self, order_id: int, farmer_id: Optional[int] = None) -> List[OrderItem]:
        query = self.db.query(OrderItem).filter(OrderItem.order_id == order_id)
        if farmer_id is not None:
            query = query.filter(OrderItem.farmer_id == farmer_id)
        return query.order_by(OrderItem.id).all()

    def _add_history(self, order: Order, status: str, note: str, actor: User) -> None:
        self.db.add(OrderStatusHistory(
            order_id=order.id,
            status=status,
            note=note,
            changed_by=actor.id,
        ))

    @staticmethod
    def _is_farmer_on(items: List[OrderItem], user: User) -> bool:
        return any(item.farmer_id == user.id for item in items)

    def _commit(self, order: Order) -> Order:
        self.db.commit()
        self.db.refresh(order)
        self.notifications.flush()
        return order

    # ========================================
    # FARMER TRANSITIONS
    # ========================================

    def confirm(self, order_id: int, actor: User) -> Order:
        """Move the actor's pending items to confirmed (admin: every pending item)"""
        try:
            order = self._lock_order(order_id)
            all_items = self._items(order.id)

            if not actor.is_admin and not self._is_farmer_on(all_items, actor):
                raise Forbidden("Not authorized to confirm this order")
            if order.status in TERMINAL_ORDER_STATUSES:
                raise InvalidTransition(f"Order is already {order.status}")

            targets = [
                item for item in all_items
                if item.status == ORDER_PENDING and (actor.is_admin or item.farmer_id == actor.id)
            ]
            if not targets:
                raise InvalidTransition("No pending items to confirm")

            for item in targets:
                item.status = ORDER_CONFIRMED

            previous = order.status
            order.status = derive_order_status(previous, [i.status for i in all_items])

            if order.status != previous:
                self._add_history(order, order.status, "Order confirmed by all farmers", actor)
            else:
                self._add_history(order, ORDER_CONFIRMED, f"Items confirmed by farmer #{actor.id}", actor)

            self.notifications.emit(
                order.buyer_id,
                "order_confirmed",
                f"A farmer has confirmed your order #{order.order_number}",
                data={"orderId": order.id},
            )
            logger.info(f"[OrderState] {order.order_number}: {len(targets)} item(s) confirmed by user {actor.id}, order={order.status}")
            return self._commit(order)
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

    def ship(
        self,
        order_id: int,
        actor: User,
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[str] = None
    ) -> Tuple[Order, str]:
        """Move the actor's confirmed items to shipped; returns the tracking number used"""
        try:
            order = self._lock_order(order_id)
            all_items = self._items(order.id)

            if not actor.is_admin and not self._is_farmer_on(all_items, actor):
                raise Forbidden("Not authorized to ship this order")
            if order.status in TERMINAL_ORDER_STATUSES:
                raise InvalidTransition(f"Order is already {order.status}")

            targets = [
                item for item in all_items
                if item.status == ORDER_CONFIRMED and (actor.is_admin or item.farmer_id == actor.id)
            ]
            if not targets:
                raise InvalidTransition("No confirmed items to ship")

            tracking = tracking_number or generate_tracking_number()
            for item in targets:
                item.status = ORDER_SHIPPED
                item.tracking_number = tracking
                item.estimated_delivery = estimated_delivery

            previous = order.status
            order.status = derive_order_status(previous, [i.status for i in all_items])

            if order.status != previous and order.status == ORDER_SHIPPED:
                order.tracking_number = tracking
                order.estimated_delivery = estimated_delivery
                order.shipped_at = _now()
                self._add_history(order, ORDER_SHIPPED, f"Tracking: {tracking}", actor)
            elif order.status != previous:
                self._add_history(order, order.status, f"Tracking: {tracking}", actor)
            else:
                self._add_history(order, ORDER_SHIPPED, f"Items shipped by farmer #{actor.id}. Tracking: {tracking}", actor)

            self.notifications.emit(
                order.buyer_id,
                "order_shipped",
                f"Your order #{order.order_number} has been shipped. Track: {tracking}",
                data={"orderId": order.id, "trackingNumber": tracking},
            )
            logger.info(f"[OrderState] {order.order_number}: {len(targets)} item(s) shipped ({tracking}), order={order.status}")
            return self._commit(order), tracking
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

    # ========================================
    # WHOLE-ORDER TRANSITIONS
    # ========================================

    def deliver(self, order_id: int, actor: User) -> Order:
        """
        Mark the whole order delivered.

        A pending cash-on-delivery payment is settled here: cash changes
        hands at the door.
        """
        try:
            order = self._lock_order(order_id)
            all_items = self._items(order.id)

            if not (actor.is_admin or order.buyer_id == actor.id or self._is_farmer_on(all_items, actor)):
                raise Forbidden("Not authorized to update this order")
            if order.status not in (ORDER_CONFIRMED, ORDER_SHIPPED):
                raise InvalidTransition(f"Cannot mark a {order.status} order as delivered")

            for item in all_items:
                item.status = ORDER_DELIVERED

            order.status = ORDER_DELIVERED
            order.delivered_at = _now()
            self._add_history(order, ORDER_DELIVERED, "Order delivered successfully", actor)

            if order.payment_method == METHOD_COD:
                cod_payment = self.db.query(Payment).filter(
                    Payment.order_id == order.id,
                    Payment.method == METHOD_COD,
                    Payment.status == PAYMENT_PENDING
                ).order_by(Payment.id.desc()).with_for_update().first()
                if cod_payment:
                    cod_payment.status = PAYMENT_COMPLETED
                    cod_payment.completed_at = _now()
                    order.payment_status = PAYMENT_COMPLETED
                    logger.info(f"[OrderState] {order.order_number}: cash on delivery collected ({cod_payment.transaction_ref})")

            self.notifications.emit(
                order.buyer_id,
                "order_delivered",
                f"Your order #{order.order_number} has been delivered!",
                data={"orderId": order.id},
            )
            logger.info(f"[OrderState] {order.order_number} delivered (by user {actor.id})")
            return self._commit(order)
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

    def cancel(self, order_id: int, actor: User, reason: Optional[str] = None) -> Order:
        """
        Cancel the order, cascade to items and put their stock back.

        The status flip is a compare-and-swap so two concurrent cancels
        cannot both release the stock.
        """
        try:
            order = self._lock_order(order_id)
            all_items = self._items(order.id)

            if not (actor.is_admin or order.buyer_id == actor.id or self._is_farmer_on(all_items, actor)):
                raise Forbidden("Not authorized to cancel this order")

            now = _now()
            swapped = self.db.query(Order).filter(
                Order.id == order.id,
                Order.status.notin_(TERMINAL_ORDER_STATUSES)
            ).update({
                Order.status: ORDER_CANCELLED,
                Order.cancelled_at: now,
                Order.cancellation_reason: reason,
                Order.updated_at: now,
            }, synchronize_session=False)

            if swapped == 0:
                raise InvalidTransition("Order cannot be cancelled")

            for item in all_items:
                item.status = ORDER_CANCELLED
                self.inventory.release(item.product_id, item.quantity)

            self._add_history(order, ORDER_CANCELLED, reason or "Order cancelled", actor)

            recipients = [order.buyer_id] + [f for f in order.farmer_ids if f != order.buyer_id]
            for user_id in recipients:
                if user_id == actor.id:
                    continue
                self.notifications.emit(
                    user_id,
                    "order_cancelled",
                    f"Order #{order.order_number} has been cancelled",
                    data={"orderId": order.id, "reason": reason},
                )

            logger.info(f"[OrderState] {order.order_number} cancelled by user {actor.id}, {len(all_items)} item(s) restocked")
            return self._commit(order)
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise

    def update_status(
        self,
        order_id: int,
        actor: User,
        status: str,
        note: Optional[str] = None,
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[str] = None
    ) -> Order:
        """Generic entry point: farmers and admins only, dispatched to the explicit actions"""
        if status not in SETTABLE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(SETTABLE_STATUSES)}")

        items = self._items(order_id)
        if not items and not self.db.query(Order.id).filter(Order.id == order_id).first():
            raise NotFound("Order not found")
        if not actor.is_admin and not self._is_farmer_on(items, actor):
            raise Forbidden("Not authorized to update this order")

        if status == ORDER_CONFIRMED:
            return self.confirm(order_id, actor)
        if status == ORDER_SHIPPED:
            order, _ = self.ship(order_id, actor, tracking_number, estimated_delivery)
            return order
        if status == ORDER_DELIVERED:
            return self.deliver(order_id, actor)
        return self.cancel(order_id, actor, reason=note)

    # ========================================
    # REFUND REQUEST
    # ========================================

    def request_refund(self, order_id: int, actor: User, reason: str) -> Order:
        """Buyer flags a paid order for an admin refund"""
        try:
            order = self._lock_order(order_id)

            if order.buyer_id != actor.id:
                raise Forbidden("Not authorized to request refund")
            if order.payment_status != PAYMENT_COMPLETED:
                raise InvalidState("Cannot request refund for unpaid order")
            if order.refund_requested:
                raise InvalidState("Refund already requested")

            order.refund_requested = True
            order.refund_reason = reason

            self.notifications.emit_admins(
                "refund_requested",
                f"Refund requested for order #{order.order_number}",
                data={"orderId": order.id, "reason": reason},
            )
            logger.info(f"[OrderState] Refund requested for {order.order_number}")
            return self._commit(order)
        except Exception:
            self.db.rollback()
            self.notifications.discard()
            raise
