"""
Export all models
"""
from app.models.user import User
from app.models.product import Product
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.payment import Payment, Refund
from app.models.notification import Notification

__all__ = [
    "User",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
    "Refund",
    "Notification"
]
