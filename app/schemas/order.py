# app/schemas/order.py
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Any, Dict
from datetime import datetime

from app.config.constants import PAYMENT_METHODS, METHOD_MOBILE_MONEY


# ========== REQUESTS ==========

class OrderItemIn(BaseModel):
    product_id: int = Field(..., alias="productId")
    quantity: int

    @validator('quantity')
    def quantity_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('Quantity must be greater than 0')
        return v

    class Config:
        populate_by_name = True


class ShippingAddress(BaseModel):
    region: str
    district: str
    address: str
    landmark: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None

    @validator('region', 'district', 'address')
    def must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()


class OrderCreate(BaseModel):
    items: List[OrderItemIn]
    shipping_address: ShippingAddress = Field(..., alias="shippingAddress")
    payment_method: str = Field(METHOD_MOBILE_MONEY, alias="paymentMethod")
    notes: Optional[str] = None

    @validator('items')
    def items_not_empty(cls, v):
        if not v:
            raise ValueError('Order must contain at least one item')
        return v

    @validator('payment_method')
    def payment_method_valid(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v

    class Config:
        populate_by_name = True


class OrderStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    estimated_delivery: Optional[str] = Field(None, alias="estimatedDelivery")

    class Config:
        populate_by_name = True


class OrderShip(BaseModel):
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    estimated_delivery: Optional[str] = Field(None, alias="estimatedDelivery")

    class Config:
        populate_by_name = True


class OrderCancel(BaseModel):
    reason: Optional[str] = None


class RefundRequest(BaseModel):
    reason: str

    @validator('reason')
    def reason_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Refund reason is required')
        return v.strip()


class RefundCreate(BaseModel):
    amount: Optional[int] = None
    reason: Optional[str] = None


# ========== RESPONSES ==========

class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    farmer_id: int
    product_name: Optional[str] = None
    quantity: int
    price: int
    total: int
    status: str
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[str] = None

    class Config:
        from_attributes = True


class StatusHistoryResponse(BaseModel):
    id: int
    status: str
    note: Optional[str] = None
    changed_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    buyer_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal: int
    delivery_fee: int
    total: int
    shipping_address: Dict[str, Any]
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_requested: Optional[bool] = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderTrackingResponse(BaseModel):
    id: int
    order_number: str
    status: str
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FarmerOrderItemResponse(OrderItemResponse):
    """Farmer's view of one line, with the parent order summary"""
    order_id: int
    order_number: Optional[str] = None
    order_status: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
