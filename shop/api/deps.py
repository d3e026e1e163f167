# shop/api/deps.py
from typing import Optional

from fastapi import Header, Query

from shop.domain.errors import AuthenticationRequired
from shop.domain.owner import AnonymousSession, AuthenticatedCustomer, CartOwner
from shop.services.gateway import PaymentGateway, build_gateway
from shop.services.lock_service import LockService

_lock_service: LockService | None = None
_gateway: PaymentGateway | None = None


def get_cart_owner(
    customer_id: Optional[int] = Query(None, gt=0),
    x_session_id: Optional[str] = Header(None),
) -> CartOwner:
    """
    Logged-in customers come with customer_id, guests with an X-Session-Id header.
    Login itself happens elsewhere; the identity is taken as given.
    """
    if customer_id is not None:
        return AuthenticatedCustomer(customer_id)
    if x_session_id:
        return AnonymousSession(x_session_id)
    raise AuthenticationRequired()


def require_customer(customer_id: Optional[int] = Query(None, gt=0)) -> int:
    if customer_id is None:
        raise AuthenticationRequired()
    return customer_id


def get_lock_service() -> LockService:
    global _lock_service
    if _lock_service is None:
        _lock_service = LockService()
    return _lock_service


def get_payment_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway
