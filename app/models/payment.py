"""
Payment and Refund models
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Payment(Base):
    """
    One payment attempt for an order.

    `transaction_ref` is generated by us and is the only key providers echo
    back in their webhooks, so it is unique and indexed independently of the
    order.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Integer, nullable=False)
    method = Column(String(30), nullable=False)  # 'mobile_money', 'mtn_mobile', 'airtel_money', 'card', 'cash_on_delivery'

    # References
    transaction_ref = Column(String(36), unique=True, nullable=False, index=True)  # 'TXN-...'
    provider_reference = Column(String(100), nullable=True, index=True)
    provider_transaction_id = Column(String(100), nullable=True)

    # Mobile money
    phone = Column(String(15), nullable=True)
    provider = Column(String(20), nullable=True)  # 'MTN_UGANDA', 'AIRTEL_UGANDA'

    # Status
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed, refunded
    failure_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="payments")
    refunds = relationship("Refund", back_populates="payment")

    def __repr__(self):
        return f"<Payment {self.transaction_ref} {self.method} status={self.status}>"


class Refund(Base):
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    amount = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default="processed")
    processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    payment = relationship("Payment", back_populates="refunds")

    def __repr__(self):
        return f"<Refund #{self.id} Payment:{self.payment_id} Amount:{self.amount}>"
