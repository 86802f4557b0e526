from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Identifier
    order_number = Column(String(50), unique=True, nullable=False, index=True)  # 'AS-LZ3K9Q-X1Y2'

    # Status (two independent axes)
    status = Column(String(20), default="pending", nullable=False, index=True)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(30), nullable=False)

    # Amounts (UGX); total = subtotal + delivery_fee, fixed at creation
    subtotal = Column(Integer, nullable=False)
    delivery_fee = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)

    # Delivery
    shipping_address = Column(JSON, nullable=False)  # {region, district, address, landmark}
    notes = Column(Text)
    tracking_number = Column(String(50), nullable=True)
    estimated_delivery = Column(String(50), nullable=True)

    # Cancellation / refund
    cancellation_reason = Column(Text, nullable=True)
    refund_requested = Column(Boolean, default=False)
    refund_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    buyer = relationship("User", back_populates="orders", foreign_keys=[buyer_id])
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    status_history = relationship("OrderStatusHistory", back_populates="order", order_by="OrderStatusHistory.id")
    payments = relationship("Payment", back_populates="order", order_by="Payment.id")

    @property
    def farmer_ids(self):
        """Distinct farmers on the order, in item order"""
        seen = []
        for item in self.items:
            if item.farmer_id not in seen:
                seen.append(item.farmer_id)
        return seen

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status} payment={self.payment_status}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    farmer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Snapshot at order time
    product_name = Column(String(200))
    quantity = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)

    # Per-farmer sub-lifecycle
    status = Column(String(20), default="pending", nullable=False)
    tracking_number = Column(String(50), nullable=True)
    estimated_delivery = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")


class OrderStatusHistory(Base):
    """Append-only audit log, one row per transition"""
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="status_history")
