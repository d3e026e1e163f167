# shop/services/discount_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from shop.data.models.discount import TYPE_PERCENTAGE, DiscountModel, DiscountUsageModel
from shop.domain.errors import DiscountNotApplicable, NotFoundError
from shop.domain.pricing import ZERO, money
from shop.domain.schemas import DiscountCreateIn
from shop.repos.discount_repo import DiscountRepo
from shop.utils.clock import as_utc, utcnow
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class DiscountService:
    """
    Discount codes: validation, amount calculation and redemption.
    Redemption only happens inside the checkout transaction.
    """

    def __init__(self, db: Session):
        self.repo = DiscountRepo(db)

    # =====================================================
    # QUERY
    # =====================================================
    def get_by_code(self, code: str) -> DiscountModel:
        discount = self.repo.get_by_code(code)
        if not discount:
            raise NotFoundError("Discount", code.strip().upper())
        return discount

    def check(self, discount: DiscountModel, order_amount: Decimal, customer_id: int | None, now=None) -> None:
        """Raise DiscountNotApplicable with the first reason the code cannot be used."""
        now = now or utcnow()
        code = discount.code

        if not discount.is_active:
            raise DiscountNotApplicable(code, "discount is not active")

        if discount.starts_at and as_utc(discount.starts_at) > now:
            raise DiscountNotApplicable(code, "discount has not started yet")

        if discount.expires_at and as_utc(discount.expires_at) <= now:
            raise DiscountNotApplicable(code, "discount has expired")

        if discount.usage_limit is not None and discount.used_count >= discount.usage_limit:
            raise DiscountNotApplicable(code, "usage limit reached")

        if discount.usage_limit_per_customer is not None and customer_id is not None:
            used = self.repo.customer_usage_count(discount.id, customer_id)
            if used >= discount.usage_limit_per_customer:
                raise DiscountNotApplicable(code, "usage limit per customer reached")

        if discount.minimum_amount is not None and order_amount < discount.minimum_amount:
            raise DiscountNotApplicable(code, f"minimum order amount is {discount.minimum_amount}")

    def is_valid(self, discount: DiscountModel, order_amount: Decimal, customer_id: int | None) -> bool:
        try:
            self.check(discount, order_amount, customer_id)
        except DiscountNotApplicable:
            return False
        return True

    @staticmethod
    def calculate(discount: DiscountModel, order_amount: Decimal) -> Decimal:
        """Amount taken off order_amount; never more than the amount itself."""
        order_amount = money(order_amount)
        if order_amount <= ZERO:
            return ZERO

        if discount.type == TYPE_PERCENTAGE:
            amount = money(order_amount * Decimal(str(discount.value)) / Decimal("100"))
            if discount.maximum_discount is not None:
                amount = min(amount, money(discount.maximum_discount))
        else:
            amount = money(discount.value)

        return max(ZERO, min(amount, order_amount))

    def validate_code(self, code: str, order_amount: Decimal, customer_id: int | None) -> dict:
        discount = self.get_by_code(code)
        try:
            self.check(discount, order_amount, customer_id)
        except DiscountNotApplicable as e:
            return {"code": discount.code, "valid": False, "discount_amount": ZERO, "message": e.reason}

        return {
            "code": discount.code,
            "valid": True,
            "discount_amount": self.calculate(discount, order_amount),
            "message": None,
        }

    # =====================================================
    # COMMANDS
    # =====================================================
    def create(self, payload: DiscountCreateIn) -> DiscountModel:
        data = payload.model_dump()
        data["code"] = data["code"].strip().upper()
        created = self.repo.create_discount(DiscountModel(**data))
        logger.info(f"Discount {created.code} created")
        return created

    def redeem(self, code: str, order_amount: Decimal, customer_id: int) -> tuple[DiscountModel, Decimal]:
        """
        Use Case: lock the code, validate it and count one use (no commit).

        The usage row needs the order id, call record_usage once the order is flushed.
        """
        discount = self.repo.get_by_code_for_update(code)
        if not discount:
            raise DiscountNotApplicable(code.strip().upper(), "unknown discount code")

        self.check(discount, order_amount, customer_id)
        amount = self.calculate(discount, order_amount)

        # conditional increment, a concurrent checkout may have taken the last use
        if self.repo.increment_usage(discount.id) == 0:
            raise DiscountNotApplicable(discount.code, "usage limit reached")

        logger.info(f"Discount {discount.code} redeemed by customer {customer_id}: {amount}")
        return discount, amount

    def record_usage(self, discount: DiscountModel, customer_id: int, order_id: int, amount: Decimal):
        return self.repo.add_usage(
            DiscountUsageModel(
                discount_id=discount.id,
                customer_id=customer_id,
                order_id=order_id,
                discount_amount=amount,
            )
        )
