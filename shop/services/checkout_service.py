# shop/services/checkout_service.py
import secrets
import string
import uuid
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop.data.models.cart import CartModel
from shop.data.models.customer import CustomerAddressModel
from shop.data.models.order import OrderModel
from shop.data.models.order_item import OrderItemModel
from shop.data.models.payment import MANUAL_METHODS
from shop.domain.errors import (
    ConcurrencyConflict,
    EmptyCart,
    InsufficientStock,
    NotFoundError,
    OrderCreationFailed,
    ShopError,
)
from shop.domain.order_status import OrderStatus
from shop.domain.owner import AuthenticatedCustomer
from shop.domain.pricing import ZERO, line_total, recompute_totals
from shop.domain.schemas import OrderCreateIn
from shop.repos.order_repo import OrderRepo
from shop.repos.product_repo import ProductRepo
from shop.services.cart_service import CartService
from shop.services.customer_service import CustomerService
from shop.services.discount_service import DiscountService
from shop.services.lock_service import LockService
from shop.services.notification_service import NotificationService
from shop.services.order_service import order_summary
from shop.services.payment_service import PaymentService
from shop.utils import settings
from shop.utils.clock import utcnow
from shop.utils.logging import get_logger

logger = get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """ORD-20240131-7K2QXA; uniqueness comes from the database constraint."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{settings.ORDER_NUMBER_PREFIX}-{utcnow():%Y%m%d}-{suffix}"


class CheckoutService:
    """
    Cart -> Order.

    One transaction: order + items + stock decrement + discount redemption +
    cart clear all commit together or not at all. A redis lock keeps two
    checkouts of the same cart from racing each other.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        payment_service: PaymentService | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.products = ProductRepo(db)
        self.discounts = DiscountService(db)
        self.carts = CartService(db, self.discounts)
        self.customers = CustomerService(db)
        self.lock_service = lock_service
        self.payments = payment_service or PaymentService(db)
        self.notification_service = notification_service or NotificationService()

    def place_order(self, customer_id: int, payload: OrderCreateIn) -> Dict[str, Any]:
        """
        Use Case: checkout.

        1. Locks the cart (redis)
        2. Creates the order from the cart (one DB transaction)
        3. Sends the notification (async)
        4. Cash on delivery / bank transfer: registers the pending payment
        """
        self.customers.get_customer(customer_id)

        cart = self.carts.find_active_cart(AuthenticatedCustomer(customer_id))
        if not cart or not cart.items:
            raise EmptyCart()

        key = self.lock_service.checkout_key(cart.id)
        token = str(uuid.uuid4())

        if not self.lock_service.acquire(key, token, settings.CHECKOUT_LOCK_TTL_SECONDS):
            logger.warning(f"Checkout already running for cart {cart.id}")
            raise ConcurrencyConflict("Checkout is already in progress for this cart")

        try:
            order = self.create_from_cart(cart, customer_id, payload)
        finally:
            self.lock_service.release(key, token)

        logger.info(f"Order {order.order_number} created from cart {cart.id}")

        try:
            self.notification_service.send_order_notification(customer_id, order.id)
        except Exception:
            # the order is committed, a broker outage must not turn it into an error
            logger.exception(f"Could not queue notification for order {order.order_number}")

        payment = None
        if payload.payment_method in MANUAL_METHODS:
            payment = self.payments.process_for_order(order, payload.payment_method)["payment"]

        return {"order": order_summary(order), "payment": payment}

    def create_from_cart(self, cart: CartModel, customer_id: int, payload: OrderCreateIn) -> OrderModel:
        try:
            order = self._create_from_cart(cart, customer_id, payload)
            self.orders.commit()
            return order
        except ShopError:
            self.orders.rollback()
            raise
        except Exception as e:
            self.orders.rollback()
            logger.exception(f"Checkout of cart {cart.id} failed")
            raise OrderCreationFailed(e) from e

    def _create_from_cart(self, cart: CartModel, customer_id: int, payload: OrderCreateIn) -> OrderModel:
        items = list(cart.items)
        if not items:
            raise EmptyCart()

        # SELECT ... FOR UPDATE, prices come from the catalog, not from the cart
        products = self.products.get_products_for_update(sorted({i.product_id for i in items}))

        lines = []
        for item in items:
            product = products.get(item.product_id)
            if not product or not product.is_active:
                raise NotFoundError("Product", item.product_id)
            if item.quantity > product.stock:
                raise InsufficientStock(product.id, item.quantity, product.stock)
            lines.append((product, item.quantity, product.current_price()))

        address = self._resolve_address(customer_id, payload)

        subtotal = recompute_totals((price, qty) for _, qty, price in lines).subtotal
        discount, discount_amount = None, ZERO
        if cart.discount_code:
            discount, discount_amount = self.discounts.redeem(cart.discount_code, subtotal, customer_id)

        totals = recompute_totals([(price, qty) for _, qty, price in lines], discount_amount)

        order = self._insert_order(
            customer_id=customer_id,
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            shipping_amount=totals.shipping,
            discount_amount=totals.discount,
            total=totals.total,
            payment_method=payload.payment_method,
            discount_id=discount.id if discount else None,
            shipping_address_id=address.id,
            notes=payload.notes,
        )

        for product, quantity, price in lines:
            order.items.append(
                OrderItemModel(
                    product_id=product.id,
                    quantity=quantity,
                    price=price,
                    total=line_total(price, quantity),
                )
            )
            # conditional UPDATE, the row lock above is not available on every backend
            if self.products.decrement_stock(product.id, quantity) == 0:
                raise InsufficientStock(product.id, quantity, product.stock)

        if discount:
            self.discounts.record_usage(discount, customer_id, order.id, totals.discount)

        self.carts.clear_in_transaction(cart)
        return order

    def _resolve_address(self, customer_id: int, payload: OrderCreateIn) -> CustomerAddressModel:
        if payload.shipping_address_id is not None:
            return self.customers.get_address(customer_id, payload.shipping_address_id)
        return self.customers.add_address(customer_id, payload.shipping_address, commit=False)

    def _insert_order(self, **fields) -> OrderModel:
        for attempt in range(1, settings.ORDER_NUMBER_MAX_ATTEMPTS + 1):
            order = OrderModel(
                order_number=generate_order_number(),
                status=OrderStatus.PENDING.value,
                **fields,
            )
            try:
                return self.orders.insert_order(order)
            except IntegrityError as e:
                if "order_number" not in str(e.orig):
                    raise
                logger.warning(f"Order number {order.order_number} taken (attempt {attempt})")

        raise OrderCreationFailed(
            RuntimeError(f"No free order number after {settings.ORDER_NUMBER_MAX_ATTEMPTS} attempts")
        )
