"""
Order endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user, require_admin, require_farmer
from app.core.database import get_db
from app.models.user import User
from app.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderShip,
    OrderCancel,
    RefundRequest,
    RefundCreate,
)
from app.services.order_service import OrderService, serialize_order
from app.services.order_state_machine import OrderStateMachine
from app.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])


# ========================================
# COLLECTION
# ========================================

@router.get("")
async def get_my_orders(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Buyer's own orders, newest first"""
    result = OrderService(db).list_buyer_orders(current_user, page, limit, status)
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = OrderService(db).create_order(current_user, order_data)
    return {
        "success": True,
        "message": "Order created successfully",
        "data": serialize_order(order),
    }


@router.get("/farmer")
async def get_farmer_orders(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_farmer)
):
    """Order lines that belong to the calling farmer"""
    result = OrderService(db).list_farmer_items(current_user, page, limit, status)
    return {"success": True, **result}


@router.get("/statistics/summary")
async def get_order_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    stats = OrderService(db).get_statistics(current_user)
    return {"success": True, "data": stats}


# ========================================
# SINGLE ORDER
# ========================================

@router.get("/{order_id}")
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = OrderService(db).get_order_for_user(order_id, current_user)
    return {"success": True, "data": serialize_order(order, include_history=True)}


@router.get("/{order_id}/tracking")
async def get_order_tracking(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "data": OrderService(db).get_tracking(order_id, current_user)}


@router.get("/{order_id}/history")
async def get_order_history(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "data": OrderService(db).get_history(order_id, current_user)}


# ========================================
# TRANSITIONS
# ========================================

@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_farmer)
):
    order = OrderStateMachine(db).update_status(
        order_id,
        current_user,
        body.status,
        note=body.note,
        tracking_number=body.tracking_number,
        estimated_delivery=body.estimated_delivery,
    )
    return {
        "success": True,
        "message": "Order status updated successfully",
        "data": serialize_order(order),
    }


@router.post("/{order_id}/confirm")
async def confirm_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_farmer)
):
    order = OrderStateMachine(db).confirm(order_id, current_user)
    return {
        "success": True,
        "message": "Order confirmed successfully",
        "data": serialize_order(order),
    }


@router.post("/{order_id}/ship")
async def ship_order(
    order_id: int,
    body: Optional[OrderShip] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_farmer)
):
    body = body or OrderShip()
    order, tracking = OrderStateMachine(db).ship(
        order_id,
        current_user,
        tracking_number=body.tracking_number,
        estimated_delivery=body.estimated_delivery,
    )
    return {
        "success": True,
        "message": "Order marked as shipped",
        "data": {"trackingNumber": tracking, "order": serialize_order(order)},
    }


@router.post("/{order_id}/deliver")
async def deliver_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = OrderStateMachine(db).deliver(order_id, current_user)
    return {
        "success": True,
        "message": "Order marked as delivered",
        "data": serialize_order(order),
    }


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: Optional[OrderCancel] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    reason = body.reason if body else None
    order = OrderStateMachine(db).cancel(order_id, current_user, reason=reason)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "data": serialize_order(order),
    }


# ========================================
# REFUNDS
# ========================================

@router.post("/{order_id}/refund-request")
async def request_refund(
    order_id: int,
    body: RefundRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = OrderStateMachine(db).request_refund(order_id, current_user, body.reason)
    return {
        "success": True,
        "message": "Refund request submitted",
        "data": serialize_order(order),
    }


@router.post("/{order_id}/refund")
async def process_refund(
    order_id: int,
    body: Optional[RefundCreate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    body = body or RefundCreate()
    refund = PaymentService(db).refund(current_user, order_id, amount=body.amount, reason=body.reason)
    return {
        "success": True,
        "message": "Refund processed successfully",
        "data": refund,
    }
