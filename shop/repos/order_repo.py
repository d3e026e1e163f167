# shop/repos/order_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from shop.data.models.order import OrderModel
from shop.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def insert_order(self, order: OrderModel) -> OrderModel:
        """Insert inside a SAVEPOINT; IntegrityError on order_number leaves the outer transaction usable."""
        with self.db.begin_nested():
            self.db.add(order)
            self.db.flush()
        return order

    def add_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_for_customer(self, customer_id: int, order_id: int) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .options(selectinload(OrderModel.items), selectinload(OrderModel.payments))
            .where(OrderModel.id == order_id, OrderModel.customer_id == customer_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_order_for_update(self, order_id: int) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_number(self, order_number: str) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.order_number == order_number)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_customer(self, customer_id: int, offset: int, limit: int) -> tuple[list[OrderModel], int]:
        base = select(OrderModel).where(OrderModel.customer_id == customer_id)
        total = self.db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        rows = self.db.execute(
            base.options(selectinload(OrderModel.items), selectinload(OrderModel.payments))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(rows), total

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
