from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from shop.data.database import Base
from shop.domain.order_status import OrderStatus
from shop.utils.clock import utcnow


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(40), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # pending, confirmed, processing, shipped, delivered, cancelled, refunded
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String(30), nullable=True)
    discount_id = Column(Integer, ForeignKey("discounts.id"), nullable=True)
    shipping_address_id = Column(Integer, ForeignKey("customer_addresses.id"), nullable=True)

    notes = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    # set when a cancellation put the items back on the shelf
    stock_released_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.id")
    payments = relationship("PaymentModel", back_populates="order", order_by="PaymentModel.id")
    customer = relationship("CustomerModel")
    discount = relationship("DiscountModel")
    shipping_address = relationship("CustomerAddressModel")
