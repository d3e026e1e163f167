"""Tests for CheckoutService (cart -> order)."""

from decimal import Decimal

import pytest

from shop.data.models import CartModel, DiscountModel, OrderModel, ProductModel
from shop.data.models.discount import DiscountUsageModel
from shop.domain.errors import (
    ConcurrencyConflict,
    DiscountNotApplicable,
    EmptyCart,
    InsufficientStock,
    NotFoundError,
    OrderCreationFailed,
)
from shop.domain.owner import AuthenticatedCustomer
from shop.domain.schemas import OrderCreateIn
from shop.repos.product_repo import ProductRepo
from shop.services import checkout_service as checkout_module
from shop.services.cart_service import CartService
from shop.services.checkout_service import CheckoutService, generate_order_number
from shop.services.payment_service import PaymentService


@pytest.fixture
def checkout(db, lock_service, gateway):
    return CheckoutService(db, lock_service=lock_service, payment_service=PaymentService(db, gateway))


@pytest.fixture
def carts(db):
    return CartService(db)


@pytest.fixture
def filled_cart(carts, customer, make_product):
    """2 x 100 + 1 x 50"""
    p1 = make_product(price="100.00", stock=5)
    p2 = make_product(price="50.00", stock=5)
    owner = AuthenticatedCustomer(customer.id)
    carts.add_item(owner, p1.id, 2)
    carts.add_item(owner, p2.id, 1)
    return {"owner": owner, "products": (p1, p2)}


def card_order(address):
    return OrderCreateIn(shipping_address_id=address.id, payment_method="card")


class TestOrderNumber:
    def test_format(self):
        number = generate_order_number()
        prefix, day, suffix = number.split("-")

        assert prefix == "ORD"
        assert len(day) == 8 and day.isdigit()
        assert len(suffix) == 6 and suffix.isalnum() and suffix.upper() == suffix


class TestPlaceOrder:
    def test_totals_snapshot(self, checkout, db, customer, address, filled_cart):
        result = checkout.place_order(customer.id, card_order(address))

        order = db.get(OrderModel, result["order"]["id"])
        assert order.subtotal == Decimal("250.00")
        assert order.tax_amount == Decimal("37.50")
        assert order.shipping_amount == Decimal("0.00")
        assert order.total == Decimal("287.50")
        assert order.status == "pending"
        assert order.shipping_address_id == address.id
        assert [(i.quantity, i.price) for i in order.items] == [(2, Decimal("100.00")), (1, Decimal("50.00"))]
        assert result["payment"] is None

    def test_cart_emptied_and_stock_decremented(self, checkout, carts, db, customer, address, filled_cart):
        p1, p2 = filled_cart["products"]

        checkout.place_order(customer.id, card_order(address))

        cart = carts.get_cart(filled_cart["owner"])
        assert cart["is_empty"]
        assert cart["total"] == Decimal("0.00")
        assert db.get(ProductModel, p1.id).stock == 3
        assert db.get(ProductModel, p2.id).stock == 4

    def test_stock_reaching_zero_flips_in_stock(self, checkout, carts, db, customer, address, make_product):
        product = make_product(price="200.00", stock=2)
        carts.add_item(AuthenticatedCustomer(customer.id), product.id, 2)

        checkout.place_order(customer.id, card_order(address))

        product = db.get(ProductModel, product.id)
        assert product.stock == 0
        assert product.in_stock is False

    def test_reprices_from_catalog(self, checkout, db, customer, address, filled_cart):
        p1, _ = filled_cart["products"]
        p1.price = Decimal("120.00")
        db.commit()

        result = checkout.place_order(customer.id, card_order(address))

        order = db.get(OrderModel, result["order"]["id"])
        assert order.subtotal == Decimal("290.00")

    def test_inline_address_saved(self, checkout, db, customer, filled_cart):
        payload = OrderCreateIn(
            payment_method="card",
            shipping_address={
                "name": "Sara",
                "phone": "+966500000001",
                "address_line_1": "Olaya Street 5",
                "city": "Riyadh",
                "state": "Riyadh",
                "postal_code": "12211",
                "country": "SA",
            },
        )

        result = checkout.place_order(customer.id, payload)

        order = db.get(OrderModel, result["order"]["id"])
        assert order.shipping_address.address_line_1 == "Olaya Street 5"
        assert order.shipping_address.customer_id == customer.id

    def test_foreign_address(self, checkout, customer, make_customer, filled_cart, db):
        from shop.data.models import CustomerAddressModel

        stranger = make_customer(name="Omar")
        theirs = CustomerAddressModel(
            customer_id=stranger.id, name="Omar", phone="1", address_line_1="x",
            city="Jeddah", state="Makkah", postal_code="1", country="SA",
        )
        db.add(theirs)
        db.commit()

        with pytest.raises(NotFoundError):
            checkout.place_order(customer.id, OrderCreateIn(shipping_address_id=theirs.id, payment_method="card"))

    def test_cash_on_delivery_confirms(self, checkout, db, customer, address, filled_cart):
        payload = OrderCreateIn(shipping_address_id=address.id, payment_method="cash_on_delivery")

        result = checkout.place_order(customer.id, payload)

        assert result["order"]["status"] == "confirmed"
        assert result["payment"]["status"] == "pending"
        assert result["payment"]["transaction_id"].startswith("COD-")
        assert result["payment"]["amount"] == Decimal("287.50")

    def test_bank_transfer_prefix(self, checkout, customer, address, filled_cart):
        payload = OrderCreateIn(shipping_address_id=address.id, payment_method="bank_transfer")

        result = checkout.place_order(customer.id, payload)

        assert result["payment"]["transaction_id"] == f"BT-{result['order']['order_number']}"

    def test_lock_released(self, checkout, lock_service, customer, address, filled_cart):
        checkout.place_order(customer.id, card_order(address))

        assert lock_service.locks == {}


class TestCheckoutFailures:
    def test_empty_cart(self, checkout, db, customer, address, carts, make_product):
        product = make_product(stock=4)
        carts.get_cart(AuthenticatedCustomer(customer.id))

        with pytest.raises(EmptyCart):
            checkout.place_order(customer.id, card_order(address))

        assert db.query(OrderModel).count() == 0
        assert db.get(ProductModel, product.id).stock == 4

    def test_no_cart_at_all(self, checkout, customer, address):
        with pytest.raises(EmptyCart):
            checkout.place_order(customer.id, card_order(address))

    def test_checkout_in_progress(self, checkout, lock_service, carts, customer, address, filled_cart):
        cart_id = carts.get_cart(filled_cart["owner"])["id"]
        lock_service.locks[lock_service.checkout_key(cart_id)] = "someone-else"

        with pytest.raises(ConcurrencyConflict):
            checkout.place_order(customer.id, card_order(address))

        assert not carts.get_cart(filled_cart["owner"])["is_empty"]

    def test_stock_sold_out_meanwhile(self, checkout, carts, db, customer, address, filled_cart):
        p1, _ = filled_cart["products"]
        p1.stock = 1
        db.commit()

        with pytest.raises(InsufficientStock):
            checkout.place_order(customer.id, card_order(address))

        assert db.query(OrderModel).count() == 0
        assert len(carts.get_cart(filled_cart["owner"])["items"]) == 2

    def test_unexpected_error_rolls_back(self, checkout, carts, db, customer, address, filled_cart, monkeypatch):
        p1, p2 = filled_cart["products"]
        calls = []
        original = ProductRepo.decrement_stock

        def flaky(self, product_id, quantity):
            calls.append(product_id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return original(self, product_id, quantity)

        monkeypatch.setattr(ProductRepo, "decrement_stock", flaky)

        with pytest.raises(OrderCreationFailed) as exc:
            checkout.place_order(customer.id, card_order(address))

        assert isinstance(exc.value.cause, RuntimeError)
        assert db.query(OrderModel).count() == 0
        assert db.get(ProductModel, p1.id).stock == 5
        assert db.get(ProductModel, p2.id).stock == 5
        assert len(carts.get_cart(filled_cart["owner"])["items"]) == 2

    def test_order_number_collision_retried(self, checkout, db, customer, address, filled_cart, monkeypatch):
        taken = OrderModel(
            order_number="ORD-20240101-AAAAAA", customer_id=customer.id, subtotal=1, total=1,
        )
        db.add(taken)
        db.commit()
        numbers = iter(["ORD-20240101-AAAAAA", "ORD-20240101-BBBBBB"])
        monkeypatch.setattr(checkout_module, "generate_order_number", lambda: next(numbers))

        result = checkout.place_order(customer.id, card_order(address))

        assert result["order"]["order_number"] == "ORD-20240101-BBBBBB"

    def test_order_number_attempts_exhausted(self, checkout, db, customer, address, filled_cart, monkeypatch):
        db.add(OrderModel(order_number="ORD-SAME", customer_id=customer.id, subtotal=1, total=1))
        db.commit()
        monkeypatch.setattr(checkout_module, "generate_order_number", lambda: "ORD-SAME")

        with pytest.raises(OrderCreationFailed):
            checkout.place_order(customer.id, card_order(address))

        assert db.query(OrderModel).count() == 1


class TestCheckoutDiscount:
    def test_discount_redeemed_once(self, checkout, carts, db, customer, address, filled_cart, make_discount):
        discount = make_discount(code="SAVE10", value="10", usage_limit=5)
        carts.apply_discount(filled_cart["owner"], "SAVE10")

        result = checkout.place_order(customer.id, card_order(address))

        order = db.get(OrderModel, result["order"]["id"])
        assert order.discount_amount == Decimal("25.00")
        assert order.total == Decimal("262.50")
        assert order.discount_id == discount.id
        assert db.get(DiscountModel, discount.id).used_count == 1
        assert db.query(DiscountUsageModel).filter_by(order_id=order.id).count() == 1

    def test_exhausted_discount_blocks_checkout(self, checkout, carts, db, customer, address, filled_cart, make_discount):
        discount = make_discount(code="LAST", value="10", usage_limit=1)
        carts.apply_discount(filled_cart["owner"], "LAST")
        discount.used_count = 1
        db.commit()

        with pytest.raises(DiscountNotApplicable):
            checkout.place_order(customer.id, card_order(address))

        assert db.query(OrderModel).count() == 0
        assert db.get(CartModel, carts.get_cart(filled_cart["owner"])["id"]).discount_code == "LAST"

    def test_failed_checkout_keeps_discount_unused(
        self, checkout, carts, db, customer, address, filled_cart, make_discount, monkeypatch
    ):
        discount = make_discount(code="SAVE10", value="10")
        carts.apply_discount(filled_cart["owner"], "SAVE10")

        def broken(self, product_id, quantity):
            raise RuntimeError("boom")

        monkeypatch.setattr(ProductRepo, "decrement_stock", broken)

        with pytest.raises(OrderCreationFailed):
            checkout.place_order(customer.id, card_order(address))

        assert db.get(DiscountModel, discount.id).used_count == 0
