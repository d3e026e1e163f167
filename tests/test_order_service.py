"""Tests for OrderService: queries, status changes, cancellation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from shop.data.models import OrderModel, PaymentModel, ProductModel
from shop.domain import order_status
from shop.domain.errors import InvalidStatusTransition, NotFoundError, OrderNotCancellable
from shop.domain.owner import AuthenticatedCustomer
from shop.domain.schemas import OrderCreateIn
from shop.services.cart_service import CartService
from shop.services.checkout_service import CheckoutService
from shop.services.gateway import CardDetails
from shop.services.gateway.mock import DECLINE_CARD
from shop.services.order_service import OrderService
from shop.services.payment_service import PaymentService


@pytest.fixture
def payments(db, gateway):
    return PaymentService(db, gateway)


@pytest.fixture
def svc(db, payments):
    return OrderService(db, payment_service=payments)


@pytest.fixture
def place(db, lock_service, payments, customer, address, make_product):
    """Puts 2 x product(100, stock 5) in the cart and checks out."""

    def _place(payment_method="card", quantity=2):
        product = make_product(price="100.00", stock=5)
        CartService(db).add_item(AuthenticatedCustomer(customer.id), product.id, quantity)
        checkout = CheckoutService(db, lock_service=lock_service, payment_service=payments)
        result = checkout.place_order(
            customer.id, OrderCreateIn(shipping_address_id=address.id, payment_method=payment_method)
        )
        return db.get(OrderModel, result["order"]["id"]), product

    return _place


def broker_down(*args):
    raise ConnectionError("broker down")


class TestQueries:
    def test_get_order(self, svc, customer, place):
        order, product = place()

        view = svc.get_order(customer.id, order.id)

        assert view["order_number"] == order.order_number
        assert view["payment_status"] == "unpaid"
        assert view["is_paid"] is False
        assert view["can_be_cancelled"] is True
        assert view["items"][0]["product_id"] == product.id
        assert view["shipping_address"]["city"] == "Riyadh"

    def test_get_foreign_order(self, svc, place, make_customer):
        order, _ = place()
        stranger = make_customer(name="Omar")

        with pytest.raises(NotFoundError):
            svc.get_order(stranger.id, order.id)

    def test_list_newest_first(self, svc, customer, place):
        first, _ = place()
        second, _ = place()

        result = svc.list_orders(customer.id, page=1, per_page=1)

        assert [o["id"] for o in result["orders"]] == [second.id]
        assert result["pagination"] == {"current_page": 1, "last_page": 2, "per_page": 1, "total": 2}

    def test_tracking(self, svc, place):
        order, _ = place()
        svc.update_status(order.id, "confirmed")
        svc.update_status(order.id, "shipped", tracking_number="SMSA-123")

        tracking = svc.tracking(order.order_number)

        assert tracking["status"] == "shipped"
        assert tracking["tracking_number"] == "SMSA-123"
        expected = (order.shipped_at + timedelta(days=3)).date().isoformat()
        assert tracking["estimated_delivery"] == expected

    def test_tracking_unknown(self, svc):
        with pytest.raises(NotFoundError):
            svc.tracking("ORD-00000000-XXXXXX")


class TestUpdateStatus:
    def test_shipping_stamps(self, svc, place):
        order, _ = place()

        svc.update_status(order.id, "confirmed")
        shipped = svc.update_status(order.id, "shipped")
        delivered = svc.update_status(order.id, "delivered")

        assert shipped["shipped_at"] is not None
        assert delivered["delivered_at"] is not None
        assert delivered["shipped_at"] == shipped["shipped_at"]
        assert delivered["can_be_cancelled"] is False

    def test_invalid_transition(self, svc, place):
        order, _ = place()

        with pytest.raises(InvalidStatusTransition):
            svc.update_status(order.id, "delivered")

    def test_delivered_back_to_pending_rejected(self, svc, place):
        order, _ = place()
        for status in ("confirmed", "shipped", "delivered"):
            svc.update_status(order.id, status)

        with pytest.raises(InvalidStatusTransition):
            svc.update_status(order.id, "pending")

    def test_permissive_mode(self, svc, place, monkeypatch):
        monkeypatch.setattr(order_status.settings, "STRICT_STATUS_TRANSITIONS", False)
        order, _ = place()

        view = svc.update_status(order.id, "delivered")

        assert view["status"] == "delivered"
        assert view["delivered_at"] is not None

    def test_cancelling_twice_restores_stock_once(self, svc, db, place, monkeypatch):
        monkeypatch.setattr(order_status.settings, "STRICT_STATUS_TRANSITIONS", False)
        order, product = place()

        svc.update_status(order.id, "cancelled")
        svc.update_status(order.id, "pending")
        svc.update_status(order.id, "cancelled")

        assert db.get(ProductModel, product.id).stock == 5
        assert db.get(OrderModel, order.id).stock_released_at is not None

    def test_notes_appended(self, svc, place):
        order, _ = place()

        svc.update_status(order.id, "confirmed", notes="Called the customer")
        view = svc.update_status(order.id, "confirmed", notes="Gift wrap")

        assert view["notes"] == "Called the customer\nGift wrap"

    def test_admin_cancel_restores_stock(self, svc, db, place):
        order, product = place()

        svc.update_status(order.id, "cancelled")

        assert db.get(ProductModel, product.id).stock == 5

    def test_unknown_order(self, svc):
        with pytest.raises(NotFoundError):
            svc.update_status(999, "confirmed")

    def test_broker_outage_does_not_fail_update(self, svc, db, place, monkeypatch):
        order, _ = place(payment_method="cash_on_delivery")
        monkeypatch.setattr(svc.notification_service, "send_status_update", broker_down)

        view = svc.update_status(order.id, "confirmed")

        assert view["status"] == "confirmed"
        assert db.get(OrderModel, order.id).status == "confirmed"


class TestCancel:
    @pytest.mark.parametrize("path", [[], ["confirmed"], ["confirmed", "processing"]])
    def test_cancellable(self, svc, db, customer, place, path):
        order, product = place()
        for status in path:
            svc.update_status(order.id, status)

        view = svc.cancel(customer.id, order.id)

        assert view["status"] == "cancelled"
        assert view["notes"].endswith("Cancelled by customer")
        assert db.get(ProductModel, product.id).stock == 5

    @pytest.mark.parametrize("path", [["confirmed", "shipped"], ["confirmed", "shipped", "delivered"]])
    def test_not_cancellable(self, svc, db, customer, place, path):
        order, product = place()
        for status in path:
            svc.update_status(order.id, status)

        with pytest.raises(OrderNotCancellable):
            svc.cancel(customer.id, order.id)

        assert db.get(ProductModel, product.id).stock == 3

    def test_cancel_cancels_pending_payment(self, svc, db, customer, place):
        order, _ = place(payment_method="cash_on_delivery")

        svc.cancel(customer.id, order.id)

        payment = db.query(PaymentModel).filter_by(order_id=order.id).one()
        assert payment.status == "cancelled"

    def test_broker_outage_does_not_fail_cancel(self, svc, db, customer, place, monkeypatch):
        order, product = place()
        monkeypatch.setattr(svc.notification_service, "send_status_update", broker_down)

        view = svc.cancel(customer.id, order.id)

        assert view["status"] == "cancelled"
        assert db.get(OrderModel, order.id).status == "cancelled"
        assert db.get(ProductModel, product.id).stock == 5

    def test_cancel_foreign_order(self, svc, place, make_customer):
        order, _ = place()
        stranger = make_customer(name="Omar")

        with pytest.raises(NotFoundError):
            svc.cancel(stranger.id, order.id)


class TestEndToEnd:
    GOOD_CARD = CardDetails("4111111111111111", 12, 2099, "123", "Sara Ali")

    def test_card_decline_then_retry(self, svc, payments, customer, place):
        order, _ = place()
        declined = CardDetails(DECLINE_CARD, 12, 2099, "123", "Sara Ali")

        first = payments.process(customer.id, order.id, "card", declined)
        assert first["payment"]["status"] == "failed"
        assert svc.get_order(customer.id, order.id)["status"] == "pending"

        second = payments.process(customer.id, order.id, "card", self.GOOD_CARD)
        assert second["order"]["status"] == "confirmed"

    def test_full_refund_refunds_order(self, svc, payments, customer, place):
        order, _ = place()
        paid = payments.process(customer.id, order.id, "card", self.GOOD_CARD)["payment"]

        payments.refund(customer.id, paid["id"])

        view = svc.get_order(customer.id, order.id)
        assert view["status"] == "refunded"
        assert view["total"] == Decimal("230.00")
        assert not svc.get_order(customer.id, order.id)["can_be_cancelled"]
