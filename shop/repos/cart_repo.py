# shop/repos/cart_repo.py
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from shop.data.models.cart import CartModel
from shop.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def _active(self, now: datetime):
        return or_(CartModel.expires_at.is_(None), CartModel.expires_at > now)

    def get_active_cart_by_customer(self, customer_id: int, now: datetime) -> CartModel | None:
        stmt = (
            select(CartModel)
            .where(CartModel.customer_id == customer_id, self._active(now))
            .order_by(CartModel.id.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_active_cart_by_session(self, session_id: str, now: datetime) -> CartModel | None:
        stmt = (
            select(CartModel)
            .where(
                CartModel.session_id == session_id,
                CartModel.customer_id.is_(None),
                self._active(now),
            )
            .order_by(CartModel.id.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_expired_carts(self, now: datetime) -> list[CartModel]:
        stmt = select(CartModel).where(CartModel.expires_at.is_not(None), CartModel.expires_at <= now)
        return list(self.db.execute(stmt).scalars().all())

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_cart_item_by_id(self, cart_id: int, item_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.id == item_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        """UPDATE carts SET ... WHERE id = :id AND version = :old_version"""
        stmt = (
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
        )
        return self.db.execute(stmt).rowcount

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
