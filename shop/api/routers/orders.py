# shop/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shop.api.deps import get_lock_service, get_payment_gateway, require_customer
from shop.data.database import get_db
from shop.domain.schemas import (
    OrderCreatedResponse,
    OrderCreateIn,
    OrderListResponse,
    OrderResponse,
    OrderStatusIn,
    TrackingResponse,
)
from shop.services.checkout_service import CheckoutService
from shop.services.gateway import PaymentGateway
from shop.services.lock_service import LockService
from shop.services.order_service import OrderService
from shop.services.payment_service import PaymentService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_service(db: Session, gateway: PaymentGateway):
    return OrderService(db, payment_service=PaymentService(db, gateway))


@router.post("", response_model=OrderCreatedResponse, status_code=201)
def create_order(
    payload: OrderCreateIn,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Creates an order from the customer's cart and empties the cart.
    Cash on delivery / bank transfer orders come back already confirmed.
    """
    svc = CheckoutService(db, lock_service=lock_service, payment_service=PaymentService(db, gateway))
    result = svc.place_order(customer_id, payload)
    return {"success": True, "message": "Order created successfully", **result}


@router.get("", response_model=OrderListResponse)
def list_orders(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    return {"success": True, **svc.list_orders(customer_id, page, per_page)}


@router.get("/tracking/{order_number}", response_model=TrackingResponse)
def track_order(
    order_number: str,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    return {"success": True, "tracking": svc.tracking(order_number)}


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    return {"success": True, "order": svc.get_order(customer_id, order_id)}


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    customer_id: int = Depends(require_customer),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    svc = get_service(db, gateway)
    order = svc.cancel(customer_id, order_id)
    return {"success": True, "message": "Order cancelled successfully", "order": order}


@router.post("/{order_id}/status", response_model=OrderResponse)
def update_status(
    order_id: int,
    payload: OrderStatusIn,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Admin: move the order to another status.
    """
    svc = get_service(db, gateway)
    order = svc.update_status(order_id, payload.status.value, payload.notes, payload.tracking_number)
    return {"success": True, "message": "Order status updated", "order": order}
