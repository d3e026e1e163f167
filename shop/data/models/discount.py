from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from shop.data.database import Base
from shop.utils.clock import utcnow

TYPE_PERCENTAGE = "percentage"
TYPE_FIXED_AMOUNT = "fixed_amount"


class DiscountModel(Base):
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    type = Column(String(20), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    minimum_amount = Column(Numeric(10, 2), nullable=True)
    maximum_discount = Column(Numeric(10, 2), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_customer = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    usages = relationship("DiscountUsageModel", back_populates="discount")


class DiscountUsageModel(Base):
    __tablename__ = "discount_usages"

    id = Column(Integer, primary_key=True)
    discount_id = Column(Integer, ForeignKey("discounts.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    discount = relationship("DiscountModel", back_populates="usages")
