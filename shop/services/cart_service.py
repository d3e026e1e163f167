from datetime import timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from shop.data.models.cart import CartModel
from shop.data.models.cart_item import CartItemModel
from shop.domain.errors import (
    ConcurrencyConflict,
    DiscountNotApplicable,
    EmptyCart,
    InsufficientStock,
    NotFoundError,
    ValidationError,
)
from shop.domain.owner import AnonymousSession, AuthenticatedCustomer, CartOwner
from shop.domain.pricing import ZERO, Totals, line_total, recompute_totals
from shop.repos.cart_repo import CartRepo
from shop.repos.product_repo import ProductRepo
from shop.services.discount_service import DiscountService
from shop.utils import settings
from shop.utils.clock import utcnow
from shop.utils.logging import get_logger

logger = get_logger(__name__)

_KEEP = object()


class CartService:
    """
    Use cases of the cart aggregate.
    commands (add, update, remove, clear, discount, merge) change state
    query (get) only reads

    Every command bumps carts.version with a conditional UPDATE
    (optimistic locking), a lost race ends in ConcurrencyConflict.
    """

    def __init__(self, db: Session, discount_service: DiscountService | None = None):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.discounts = discount_service or DiscountService(db)

    # =====================================================
    # QUERY
    # =====================================================
    def get_cart(self, owner: CartOwner) -> Dict[str, Any]:
        """
        Use Case: read the owner's cart (created lazily on first access).
        """
        return self.view(self.get_or_create_cart(owner))

    def find_active_cart(self, owner: CartOwner) -> CartModel | None:
        now = utcnow()
        if isinstance(owner, AuthenticatedCustomer):
            return self.repo.get_active_cart_by_customer(owner.customer_id, now)
        return self.repo.get_active_cart_by_session(owner.token, now)

    def get_or_create_cart(self, owner: CartOwner) -> CartModel:
        existing = self.find_active_cart(owner)
        if existing:
            return existing

        if isinstance(owner, AuthenticatedCustomer):
            cart = CartModel(customer_id=owner.customer_id)
            ttl = timedelta(days=settings.CUSTOMER_CART_TTL_DAYS)
        else:
            cart = CartModel(session_id=owner.token)
            ttl = timedelta(days=settings.GUEST_CART_TTL_DAYS)

        cart.version = 1
        cart.expires_at = utcnow() + ttl
        cart.subtotal = cart.tax = cart.shipping = cart.discount = cart.total = ZERO

        created = self.repo.create_cart(cart)
        logger.info(f"Created cart {created.id} for {owner}")
        return created

    @staticmethod
    def view(cart: CartModel) -> Dict[str, Any]:
        items = list(cart.items)
        return {
            "id": cart.id,
            "customer_id": cart.customer_id,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product_name": i.product.name if i.product else "Unknown Product",
                    "quantity": i.quantity,
                    "unit_price": i.unit_price,
                    "total_price": i.total_price,
                }
                for i in items
            ],
            "subtotal": cart.subtotal,
            "tax": cart.tax,
            "shipping": cart.shipping,
            "discount": cart.discount,
            "discount_code": cart.discount_code,
            "total": cart.total,
            "item_count": sum(i.quantity for i in items),
            "is_empty": not items,
            "expires_at": cart.expires_at,
        }

    # =====================================================
    # COMMANDS
    # =====================================================
    def add_item(self, owner: CartOwner, product_id: int, quantity: int = 1) -> Dict[str, Any]:
        """
        Use Case: add a product to the cart.

        Repeated adds of the same product accumulate on one line; the line
        takes the product's current price.
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        cart = self.get_or_create_cart(owner)

        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product", product_id)

        existing_item = self.repo.get_cart_item(cart.id, product_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        self._check_quantity(product, new_quantity)

        price = product.current_price()

        if existing_item:
            logger.info(
                f"Product {product_id} already in cart {cart.id}, quantity "
                f"{existing_item.quantity} -> {new_quantity}"
            )
            existing_item.quantity = new_quantity
            existing_item.unit_price = price
            existing_item.total_price = line_total(price, new_quantity)
        else:
            logger.info(f"Adding product {product_id} to cart {cart.id}")
            cart.items.append(
                CartItemModel(
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=price,
                    total_price=line_total(price, quantity),
                )
            )

        self._save(cart)
        return self.view(cart)

    def update_item(self, owner: CartOwner, item_id: int, quantity: int) -> Dict[str, Any]:
        """
        Use Case: set the quantity of a line; 0 or less removes it.
        """
        cart = self.get_or_create_cart(owner)
        item = self.repo.get_cart_item_by_id(cart.id, item_id)

        if not item:
            raise NotFoundError("Cart item", item_id)

        if quantity <= 0:
            return self.remove_item(owner, item_id)

        self._check_quantity(item.product, quantity)

        item.quantity = quantity
        item.total_price = line_total(item.unit_price, quantity)

        self._save(cart)
        return self.view(cart)

    def remove_item(self, owner: CartOwner, item_id: int) -> Dict[str, Any]:
        """
        Use Case: remove a line. Removing a line that is already gone is a no-op.
        """
        cart = self.get_or_create_cart(owner)
        item = self.repo.get_cart_item_by_id(cart.id, item_id)

        if not item:
            logger.info(f"Cart item {item_id} not in cart {cart.id}, nothing to remove")
            return self.view(cart)

        cart.items.remove(item)
        self._save(cart)

        logger.info(f"Removed item {item_id} from cart {cart.id}")
        return self.view(cart)

    def clear(self, owner: CartOwner) -> Dict[str, Any]:
        """
        Use Case: empty the cart (the cart row stays).
        """
        cart = self.get_or_create_cart(owner)

        if not cart.items and not cart.discount_code:
            return self.view(cart)

        self.clear_in_transaction(cart)
        self.repo.commit()

        logger.info(f"Cart {cart.id} cleared")
        return self.view(cart)

    def clear_in_transaction(self, cart: CartModel) -> None:
        """Empty the cart without committing; checkout calls this inside its own transaction."""
        cart.items.clear()
        self._write_totals(cart, recompute_totals([]), discount_code=None)

    def apply_discount(self, owner: CartOwner, code: str) -> Dict[str, Any]:
        """
        Use Case: attach a discount code to the cart.

        The amount shown on the cart is a hint; the code is validated and
        redeemed again at checkout.
        """
        cart = self.get_or_create_cart(owner)
        if not cart.items:
            raise EmptyCart()

        discount = self.discounts.get_by_code(code)
        subtotal = recompute_totals(self._lines(cart)).subtotal
        customer_id = owner.customer_id if isinstance(owner, AuthenticatedCustomer) else None
        self.discounts.check(discount, subtotal, customer_id)

        self._save(cart, discount_code=discount.code)
        logger.info(f"Discount {discount.code} applied to cart {cart.id}")
        return self.view(cart)

    def remove_discount(self, owner: CartOwner) -> Dict[str, Any]:
        cart = self.get_or_create_cart(owner)
        if cart.discount_code:
            self._save(cart, discount_code=None)
        return self.view(cart)

    def merge_guest_cart(self, session_token: str, customer_id: int) -> Dict[str, Any]:
        """
        Use Case: after login, fold the session cart into the customer's cart.

        Quantities are summed and capped at stock and the per-line maximum;
        the session cart is deleted.
        """
        customer_cart = self.get_or_create_cart(AuthenticatedCustomer(customer_id))
        guest_cart = self.find_active_cart(AnonymousSession(session_token))

        if not guest_cart:
            return self.view(customer_cart)

        by_product = {i.product_id: i for i in customer_cart.items}

        for guest_item in list(guest_cart.items):
            product = guest_item.product
            if not product or not product.is_active:
                continue

            target = by_product.get(guest_item.product_id)
            quantity = guest_item.quantity + (target.quantity if target else 0)
            quantity = min(quantity, settings.MAX_QUANTITY_PER_ITEM)
            if settings.ENFORCE_STOCK:
                quantity = min(quantity, product.stock)
            if quantity <= 0:
                continue

            price = product.current_price()
            if target:
                target.quantity = quantity
                target.unit_price = price
                target.total_price = line_total(price, quantity)
            else:
                customer_cart.items.append(
                    CartItemModel(
                        product_id=product.id,
                        quantity=quantity,
                        unit_price=price,
                        total_price=line_total(price, quantity),
                    )
                )

        code = customer_cart.discount_code or guest_cart.discount_code
        self.repo.delete_cart(guest_cart)
        self._save(customer_cart, discount_code=code)

        logger.info(f"Merged guest cart {guest_cart.id} into cart {customer_cart.id}")
        return self.view(customer_cart)

    # =====================================================
    # HELPERS
    # =====================================================
    @staticmethod
    def _lines(cart: CartModel):
        return [(i.unit_price, i.quantity) for i in cart.items]

    def _check_quantity(self, product, quantity: int) -> None:
        if quantity > settings.MAX_QUANTITY_PER_ITEM:
            raise ValidationError(f"Maximum quantity per item is {settings.MAX_QUANTITY_PER_ITEM}")

        if settings.ENFORCE_STOCK and quantity > product.stock:
            raise InsufficientStock(product.id, quantity, product.stock)

    def _discount_hint(self, cart: CartModel, code: str | None):
        if not code:
            return ZERO, None

        subtotal = recompute_totals(self._lines(cart)).subtotal
        discount = self.discounts.repo.get_by_code(code)
        if not discount:
            return ZERO, None

        try:
            self.discounts.check(discount, subtotal, cart.customer_id)
        except DiscountNotApplicable as e:
            # the code stays on the cart, checkout reports the reason
            logger.info(f"Discount {code} no longer applies to cart {cart.id}: {e.reason}")
            return ZERO, code

        return self.discounts.calculate(discount, subtotal), code

    def _save(self, cart: CartModel, discount_code=_KEEP) -> None:
        code = cart.discount_code if discount_code is _KEEP else discount_code
        amount, code = self._discount_hint(cart, code)
        self._write_totals(cart, recompute_totals(self._lines(cart), amount), code)
        self.repo.commit()

    def _write_totals(self, cart: CartModel, totals: Totals, discount_code: str | None) -> None:
        # Optimistic locking
        # UPDATE carts SET version = 2 ... WHERE id = 1 AND version = 1
        ttl_days = settings.CUSTOMER_CART_TTL_DAYS if cart.customer_id else settings.GUEST_CART_TTL_DAYS
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "subtotal": totals.subtotal,
                "tax": totals.tax,
                "shipping": totals.shipping,
                "discount": totals.discount,
                "total": totals.total,
                "discount_code": discount_code,
                "version": cart.version + 1,
                "expires_at": utcnow() + timedelta(days=ttl_days),
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyConflict("Cart was modified by another request")
