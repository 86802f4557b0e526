"""
User model - profile mirror of the identity provider's account
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(15), nullable=True)

    # Role
    role = Column(String(20), default="buyer", nullable=False)  # 'buyer', 'farmer', 'admin'

    # Location (farmers' region drives delivery fees)
    region = Column(String(50), nullable=True)
    district = Column(String(100), nullable=True)

    # Status
    is_active = Column(Boolean, default=True)
    is_suspended = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    products = relationship("Product", back_populates="farmer")
    orders = relationship("Order", back_populates="buyer", foreign_keys="Order.buyer_id")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_farmer(self) -> bool:
        return self.role == "farmer"

    def __repr__(self):
        return f"<User #{self.id} {self.role}>"
