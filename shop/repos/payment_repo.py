# shop/repos/payment_repo.py
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shop.data.models.order import OrderModel
from shop.data.models.payment import STATUS_COMPLETED, STATUS_PROCESSING, PaymentModel
from shop.domain.pricing import money


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: int) -> PaymentModel | None:
        return self.db.get(PaymentModel, payment_id)

    def get_payment_for_customer_for_update(self, customer_id: int, payment_id: int) -> PaymentModel | None:
        """SELECT ... FOR UPDATE OF payments, serializes refunds of one charge"""
        stmt = (
            select(PaymentModel)
            .join(OrderModel, OrderModel.id == PaymentModel.order_id)
            .where(PaymentModel.id == payment_id, OrderModel.customer_id == customer_id)
            .with_for_update(of=PaymentModel)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_order(self, order_id: int) -> list[PaymentModel]:
        stmt = select(PaymentModel).where(PaymentModel.order_id == order_id).order_by(PaymentModel.id)
        return list(self.db.execute(stmt).scalars().all())

    def _count_charges(self, order_id: int, status: str) -> int:
        stmt = select(func.count(PaymentModel.id)).where(
            PaymentModel.order_id == order_id,
            PaymentModel.status == status,
            PaymentModel.refunded_payment_id.is_(None),
        )
        return self.db.execute(stmt).scalar_one()

    def has_completed_charge(self, order_id: int) -> bool:
        return self._count_charges(order_id, STATUS_COMPLETED) > 0

    def has_charge_in_flight(self, order_id: int) -> bool:
        """A card attempt stored as processing is still waiting on the gateway."""
        return self._count_charges(order_id, STATUS_PROCESSING) > 0

    def _refund_sum(self, *criteria) -> Decimal:
        stmt = select(func.coalesce(func.sum(PaymentModel.amount), 0)).where(
            PaymentModel.refunded_payment_id.is_not(None), *criteria
        )
        return money(abs(Decimal(str(self.db.execute(stmt).scalar_one()))))

    def refunded_total(self, payment_id: int) -> Decimal:
        """Completed refunds of one charge, as a positive amount."""
        return self._refund_sum(
            PaymentModel.refunded_payment_id == payment_id,
            PaymentModel.status == STATUS_COMPLETED,
        )

    def reserved_refund_total(self, payment_id: int) -> Decimal:
        """Refunds booked or in flight against one charge, as a positive amount."""
        return self._refund_sum(
            PaymentModel.refunded_payment_id == payment_id,
            PaymentModel.status.in_((STATUS_PROCESSING, STATUS_COMPLETED)),
        )

    def order_refunded_total(self, order_id: int) -> Decimal:
        return self._refund_sum(
            PaymentModel.order_id == order_id,
            PaymentModel.status == STATUS_COMPLETED,
        )

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
