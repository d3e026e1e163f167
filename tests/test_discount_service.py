"""Tests for DiscountService."""

from datetime import timedelta
from decimal import Decimal

import pytest

from shop.data.models.discount import TYPE_FIXED_AMOUNT
from shop.domain.errors import DiscountNotApplicable
from shop.domain.schemas import DiscountCreateIn
from shop.services.discount_service import DiscountService
from shop.utils.clock import utcnow


@pytest.fixture
def svc(db):
    return DiscountService(db)


class TestCalculate:
    def test_percentage(self, make_discount):
        discount = make_discount(value="15")

        assert DiscountService.calculate(discount, Decimal("200")) == Decimal("30.00")

    def test_percentage_capped(self, make_discount):
        discount = make_discount(value="50", maximum_discount=Decimal("40"))

        assert DiscountService.calculate(discount, Decimal("200")) == Decimal("40.00")

    def test_fixed(self, make_discount):
        discount = make_discount(type=TYPE_FIXED_AMOUNT, value="25")

        assert DiscountService.calculate(discount, Decimal("200")) == Decimal("25.00")

    def test_fixed_never_exceeds_amount(self, make_discount):
        discount = make_discount(type=TYPE_FIXED_AMOUNT, value="500")

        assert DiscountService.calculate(discount, Decimal("120")) == Decimal("120.00")

    def test_zero_amount(self, make_discount):
        discount = make_discount()

        assert DiscountService.calculate(discount, Decimal("0")) == Decimal("0.00")


class TestCheck:
    def test_valid(self, svc, make_discount, customer):
        discount = make_discount()

        assert svc.is_valid(discount, Decimal("100"), customer.id)

    @pytest.mark.parametrize("kwargs,reason", [
        ({"is_active": False}, "not active"),
        ({"starts_at": utcnow() + timedelta(days=1)}, "not started"),
        ({"expires_at": utcnow() - timedelta(days=1)}, "expired"),
        ({"usage_limit": 2, "used_count": 2}, "usage limit"),
        ({"minimum_amount": Decimal("500")}, "minimum"),
    ])
    def test_rejections(self, svc, make_discount, customer, kwargs, reason):
        discount = make_discount(**kwargs)

        with pytest.raises(DiscountNotApplicable) as exc:
            svc.check(discount, Decimal("100"), customer.id)

        assert reason in exc.value.reason
        assert not svc.is_valid(discount, Decimal("100"), customer.id)

    def test_open_window_bounds(self, svc, make_discount, customer):
        discount = make_discount(starts_at=None, expires_at=None)

        svc.check(discount, Decimal("1"), customer.id)

    def test_per_customer_limit(self, svc, db, make_discount, customer, make_customer):
        discount = make_discount(usage_limit_per_customer=1)
        other = make_customer(name="Omar")
        svc.record_usage(discount, customer.id, order_id=1, amount=Decimal("5"))
        db.commit()

        with pytest.raises(DiscountNotApplicable):
            svc.check(discount, Decimal("100"), customer.id)
        svc.check(discount, Decimal("100"), other.id)


class TestValidateCode:
    def test_valid_code(self, svc, make_discount, customer):
        make_discount(code="TEN", value="10")

        result = svc.validate_code("ten", Decimal("300"), customer.id)

        assert result["valid"] is True
        assert result["discount_amount"] == Decimal("30.00")

    def test_invalid_code_reports_reason(self, svc, make_discount, customer):
        make_discount(code="OLD", expires_at=utcnow() - timedelta(days=1))

        result = svc.validate_code("OLD", Decimal("300"), customer.id)

        assert result["valid"] is False
        assert result["discount_amount"] == Decimal("0")
        assert "expired" in result["message"]


class TestRedeem:
    def test_counts_one_use(self, svc, db, make_discount, customer):
        discount = make_discount(code="ONCE", usage_limit=1)

        _, amount = svc.redeem("once", Decimal("100"), customer.id)
        db.commit()

        assert amount == Decimal("10.00")
        db.refresh(discount)
        assert discount.used_count == 1

    def test_exhausted(self, svc, db, make_discount, customer):
        make_discount(code="ONCE", usage_limit=1, used_count=1)

        with pytest.raises(DiscountNotApplicable):
            svc.redeem("ONCE", Decimal("100"), customer.id)

    def test_unknown(self, svc, customer):
        with pytest.raises(DiscountNotApplicable):
            svc.redeem("NOPE", Decimal("100"), customer.id)


class TestCreate:
    def test_code_uppercased(self, svc):
        created = svc.create(DiscountCreateIn(code="summer", name="Summer", type="percentage", value=Decimal("20")))

        assert created.code == "SUMMER"
        assert created.used_count == 0

    def test_percentage_over_100_rejected(self):
        with pytest.raises(ValueError):
            DiscountCreateIn(code="X", name="X", type="percentage", value=Decimal("150"))
