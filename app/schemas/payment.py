# app/schemas/payment.py
from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime

from app.config.constants import PAYMENT_METHODS


class PaymentInitiate(BaseModel):
    order_id: int = Field(..., alias="orderId")
    method: str
    phone: Optional[str] = None
    email: Optional[str] = None

    @validator('method')
    def method_valid(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v

    class Config:
        populate_by_name = True


class PaymentRetry(BaseModel):
    method: Optional[str] = None
    phone: Optional[str] = None

    @validator('method')
    def method_valid(cls, v):
        if v is not None and v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    amount: int
    method: str
    transaction_ref: str
    provider_reference: Optional[str] = None
    provider: Optional[str] = None
    phone: Optional[str] = None
    status: str
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefundResponse(BaseModel):
    id: int
    payment_id: int
    order_id: int
    amount: int
    reason: Optional[str] = None
    status: str
    processed_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
