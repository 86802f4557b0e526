"""
Order aggregate builder and order read paths
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from app.config.constants import ORDER_PENDING, ORDER_STATUSES, ITEM_STATUSES
from app.core.exceptions import NotFound, Forbidden, ProductNotFound, InsufficientStock, ValidationError
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.product import Product
from app.models.user import User
from app.schemas.order import (
    OrderCreate,
    OrderResponse,
    StatusHistoryResponse,
    OrderTrackingResponse,
    FarmerOrderItemResponse,
)
from app.services.inventory_service import InventoryService
from app.services.notification_service import NotificationService
from app.utils.helpers import (
    generate_order_number,
    calculate_order_delivery_fee,
    paginate,
    pagination_response,
)

logger = logging.getLogger(__name__)


# ========================================
# SERIALIZATION
# ========================================

def serialize_order(order: Order, include_history: bool = False) -> Dict[str, Any]:
    data = OrderResponse.model_validate(order).model_dump(mode="json")
    if include_history:
        data["statusHistory"] = serialize_history(order.status_history)
    return data


def serialize_history(history: List[OrderStatusHistory]) -> List[Dict[str, Any]]:
    return [StatusHistoryResponse.model_validate(h).model_dump(mode="json") for h in history]


def can_view_order(order: Order, user: User) -> bool:
    """Buyer, any farmer with an item on the order, or an admin"""
    if user.is_admin or order.buyer_id == user.id:
        return True
    return any(item.farmer_id == user.id for item in order.items)


class OrderService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.notifications = notifications or NotificationService(db)

    # ========================================
    # CREATE
    # ========================================

    def create_order(self, buyer: User, data: OrderCreate) -> Order:
        """
        Validate the cart, price it and persist a multi-farmer order.

        Order, items, stock reservations and the first history row are one
        transaction: any failure leaves no trace of the order and no stock
        movement. Farmers are notified only after the commit.

        Raises:
            ProductNotFound: a product id is unknown or not for sale
            InsufficientStock: a line asks for more than is available
        """
        # Merge duplicate lines, keeping cart order
        quantities: Dict[int, int] = {}
        for line in data.items:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        products = self.db.query(Product).options(
            joinedload(Product.farmer)
        ).filter(Product.id.in_(list(quantities))).all()
        by_id = {p.id: p for p in products}

        missing = [pid for pid in quantities if pid not in by_id or not by_id[pid].is_available]
        if missing:
            raise ProductNotFound(details={"productIds": missing})

        subtotal = 0
        lines = []
        for product_id, quantity in quantities.items():
            product = by_id[product_id]
            if product.quantity_available < quantity:
                raise InsufficientStock(
                    f"Insufficient quantity for {product.name}",
                    details={
                        "productId": product.id,
                        "requested": quantity,
                        "available": product.quantity_available,
                    }
                )
            line_total = product.price * quantity
            subtotal += line_total
            lines.append((product, quantity, line_total))

        shipping_address = data.shipping_address.model_dump(exclude_none=True)
        farmer_regions = [product.farmer.region for product, _, _ in lines]
        delivery_fee = calculate_order_delivery_fee(farmer_regions, shipping_address["region"])

        try:
            order = Order(
                buyer_id=buyer.id,
                order_number=generate_order_number(),
                status=ORDER_PENDING,
                payment_status=ORDER_PENDING,
                payment_method=data.payment_method,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                total=subtotal + delivery_fee,
                shipping_address=shipping_address,
                notes=data.notes,
            )
            self.db.add(order)
            self.db.flush()

            for product, quantity, line_total in lines:
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    farmer_id=product.farmer_id,
                    buyer_id=buyer.id,
                    product_name=product.name,
                    quantity=quantity,
                    price=product.price,
                    total=line_total,
                    status=ORDER_PENDING,
                ))

            # Authoritative check: the read above may be stale by now
            for product, quantity, _ in lines:
                self.inventory.reserve(product.id, quantity)

            self.db.add(OrderStatusHistory(
                order_id=order.id,
                status=ORDER_PENDING,
                note="Order placed",
                changed_by=buyer.id,
            ))

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            f"[Orders] ✅ {order.order_number} created: buyer={buyer.id} "
            f"items={len(lines)} total={order.total}"
        )

        for farmer_id in order.farmer_ids:
            self.notifications.emit(
                farmer_id,
                "order_placed",
                f"You have a new order #{order.order_number}",
                data={"orderId": order.id},
            )
        self.notifications.flush()

        return order

    # ========================================
    # READ
    # ========================================

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).options(
            selectinload(Order.items),
            selectinload(Order.status_history),
        ).filter(Order.id == order_id).first()

        if not order:
            raise NotFound("Order not found")
        return order

    def get_order_for_user(self, order_id: int, user: User) -> Order:
        order = self.get_order(order_id)
        if not can_view_order(order, user):
            raise Forbidden("Not authorized to view this order")
        return order

    def list_buyer_orders(
        self,
        buyer: User,
        page: Any = 1,
        limit: Any = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        pages = paginate(page, limit)

        if status and status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")

        query = self.db.query(Order).filter(Order.buyer_id == buyer.id)
        if status:
            query = query.filter(Order.status == status)

        total = query.count()
        orders = query.options(selectinload(Order.items)).order_by(
            Order.created_at.desc(), Order.id.desc()
        ).offset(pages["offset"]).limit(pages["limit"]).all()

        return pagination_response(
            [serialize_order(o) for o in orders], total, pages["page"], pages["limit"]
        )

    def list_farmer_items(
        self,
        farmer: User,
        page: Any = 1,
        limit: Any = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        """A farmer sees their own lines only, never a sibling farmer's"""
        pages = paginate(page, limit)

        if status and status not in ITEM_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")

        query = self.db.query(OrderItem).filter(OrderItem.farmer_id == farmer.id)
        if status:
            query = query.filter(OrderItem.status == status)

        total = query.count()
        items = query.options(joinedload(OrderItem.order)).order_by(
            OrderItem.created_at.desc(), OrderItem.id.desc()
        ).offset(pages["offset"]).limit(pages["limit"]).all()

        data = []
        for item in items:
            row = FarmerOrderItemResponse.model_validate(item).model_dump(mode="json")
            row.update({
                "order_number": item.order.order_number,
                "order_status": item.order.status,
                "payment_status": item.order.payment_status,
                "shipping_address": item.order.shipping_address,
            })
            data.append(row)

        return pagination_response(data, total, pages["page"], pages["limit"])

    def get_tracking(self, order_id: int, user: User) -> Dict[str, Any]:
        order = self.get_order_for_user(order_id, user)
        data = OrderTrackingResponse.model_validate(order).model_dump(mode="json")
        data["statusHistory"] = serialize_history(order.status_history)
        return data

    def get_history(self, order_id: int, user: User) -> List[Dict[str, Any]]:
        """Newest first"""
        order = self.get_order_for_user(order_id, user)
        return serialize_history(list(reversed(order.status_history)))

    def get_statistics(self, user: User) -> Dict[str, Any]:
        """Counts per status, plus revenue (farmer) or spend (buyer) on delivered orders"""
        stats: Dict[str, Any] = {}

        if user.is_farmer:
            rows = self.db.query(OrderItem.status, func.count(OrderItem.id)).filter(
                OrderItem.farmer_id == user.id
            ).group_by(OrderItem.status).all()
            counts = dict(rows)
            for status in ITEM_STATUSES:
                stats[status] = counts.get(status, 0)

            revenue = self.db.query(func.coalesce(func.sum(OrderItem.total), 0)).filter(
                OrderItem.farmer_id == user.id,
                OrderItem.status == "delivered"
            ).scalar()
            stats["totalRevenue"] = int(revenue or 0)
        else:
            rows = self.db.query(Order.status, func.count(Order.id)).filter(
                Order.buyer_id == user.id
            ).group_by(Order.status).all()
            counts = dict(rows)
            for status in ITEM_STATUSES:
                stats[status] = counts.get(status, 0)

            spent = self.db.query(func.coalesce(func.sum(Order.total), 0)).filter(
                Order.buyer_id == user.id,
                Order.status == "delivered"
            ).scalar()
            stats["totalSpent"] = int(spent or 0)

        return stats
