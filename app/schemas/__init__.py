from .order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderShip,
    OrderCancel,
    RefundRequest,
    RefundCreate,
    OrderResponse,
    OrderItemResponse,
    StatusHistoryResponse,
    OrderTrackingResponse,
    FarmerOrderItemResponse,
)
from .payment import PaymentInitiate, PaymentRetry, PaymentResponse, RefundResponse
