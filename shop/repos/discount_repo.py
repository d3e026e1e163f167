from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from shop.data.models.discount import DiscountModel, DiscountUsageModel


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> DiscountModel | None:
        stmt = select(DiscountModel).where(DiscountModel.code == code.strip().upper())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_code_for_update(self, code: str) -> DiscountModel | None:
        stmt = (
            select(DiscountModel)
            .where(DiscountModel.code == code.strip().upper())
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def customer_usage_count(self, discount_id: int, customer_id: int) -> int:
        stmt = select(func.count(DiscountUsageModel.id)).where(
            DiscountUsageModel.discount_id == discount_id,
            DiscountUsageModel.customer_id == customer_id,
        )
        return self.db.execute(stmt).scalar_one()

    def increment_usage(self, discount_id: int) -> int:
        """UPDATE ... SET used_count = used_count + 1 WHERE under the limit; 0 rows means exhausted."""
        stmt = (
            update(DiscountModel)
            .where(
                DiscountModel.id == discount_id,
                or_(
                    DiscountModel.usage_limit.is_(None),
                    DiscountModel.used_count < DiscountModel.usage_limit,
                ),
            )
            .values(used_count=DiscountModel.used_count + 1)
        )
        return self.db.execute(stmt).rowcount

    def add_usage(self, usage: DiscountUsageModel) -> DiscountUsageModel:
        self.db.add(usage)
        return usage

    def create_discount(self, discount: DiscountModel) -> DiscountModel:
        self.db.add(discount)
        self.db.commit()
        self.db.refresh(discount)
        return discount
