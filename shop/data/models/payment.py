from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from shop.data.database import Base
from shop.utils.clock import utcnow

METHOD_CARD = "card"
METHOD_CASH_ON_DELIVERY = "cash_on_delivery"
METHOD_BANK_TRANSFER = "bank_transfer"
MANUAL_METHODS = (METHOD_CASH_ON_DELIVERY, METHOD_BANK_TRANSFER)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"
STATUS_REFUNDED = "refunded"


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    # refund entries carry a negative amount and point at the charge they refund
    amount = Column(Numeric(10, 2), nullable=False)
    refunded_payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True, index=True)

    payment_method = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    transaction_id = Column(String(255), nullable=True)
    gateway = Column(String(50), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    refund_reason = Column(Text, nullable=True)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    order = relationship("OrderModel", back_populates="payments")

    @property
    def is_refund(self) -> bool:
        return self.refunded_payment_id is not None
