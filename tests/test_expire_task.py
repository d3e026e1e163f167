from datetime import timedelta
from decimal import Decimal

import pytest

from shop.data.models import CartItemModel, CartModel
from shop.domain.owner import AnonymousSession, AuthenticatedCustomer
from shop.services.cart_service import CartService
from shop.tasks import expire as expire_module
from shop.tasks.expire import expire_carts, expire_carts_task
from shop.utils.clock import utcnow


@pytest.fixture
def carts(db):
    return CartService(db)


def age(db, cart_id, minutes=5):
    db.get(CartModel, cart_id).expires_at = utcnow() - timedelta(minutes=minutes)
    db.commit()


class TestExpireCarts:
    def test_guest_cart_deleted(self, carts, db, make_product):
        product = make_product()
        cart_id = carts.add_item(AnonymousSession("guest-1"), product.id, 1)["id"]
        age(db, cart_id)

        result = expire_carts(db)

        assert result == {"deleted": 1, "cleared": 0}
        assert db.get(CartModel, cart_id) is None
        assert db.query(CartItemModel).count() == 0

    def test_customer_cart_emptied(self, carts, db, customer, make_product, make_discount):
        make_discount(code="SAVE10")
        product = make_product(price="200.00")
        owner = AuthenticatedCustomer(customer.id)
        carts.add_item(owner, product.id, 1)
        cart_id = carts.apply_discount(owner, "SAVE10")["id"]
        version = db.get(CartModel, cart_id).version
        age(db, cart_id)

        result = expire_carts(db)

        cart = db.get(CartModel, cart_id)
        assert result == {"deleted": 0, "cleared": 1}
        assert cart.items == []
        assert cart.total == Decimal("0")
        assert cart.discount_code is None
        assert cart.version == version + 1

    def test_live_carts_untouched(self, carts, db, make_product):
        product = make_product()
        cart_id = carts.add_item(AnonymousSession("guest-2"), product.id, 2)["id"]

        result = expire_carts(db)

        assert result == {"deleted": 0, "cleared": 0}
        assert len(db.get(CartModel, cart_id).items) == 1

    def test_next_access_gets_fresh_cart(self, carts, db, customer, make_product):
        product = make_product()
        owner = AuthenticatedCustomer(customer.id)
        old_id = carts.add_item(owner, product.id, 1)["id"]
        age(db, old_id)
        expire_carts(db)

        cart = carts.get_cart(owner)

        assert cart["id"] != old_id
        assert cart["is_empty"]


class TestExpireTask:
    def test_runs_eagerly(self, carts, db, make_product, monkeypatch):
        monkeypatch.setattr(expire_module, "SessionLocal", lambda: db)
        product = make_product()
        cart_id = carts.add_item(AnonymousSession("guest-3"), product.id, 1)["id"]
        age(db, cart_id)

        result = expire_carts_task.delay().get()

        assert result == {"deleted": 1, "cleared": 0}
