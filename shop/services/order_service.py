# shop/services/order_service.py
from datetime import timedelta
from math import ceil
from typing import Any, Dict

from sqlalchemy.orm import Session

from shop.data.models.order import OrderModel
from shop.domain.errors import NotFoundError, OrderNotCancellable
from shop.domain.order_status import OrderStatus, can_be_cancelled, ensure_transition
from shop.repos.order_repo import OrderRepo
from shop.repos.product_repo import ProductRepo
from shop.services.notification_service import NotificationService
from shop.services.payment_service import PaymentService, is_paid, payment_status_of, payment_view
from shop.utils.clock import utcnow
from shop.utils.logging import get_logger

logger = get_logger(__name__)

DELIVERY_ESTIMATE = timedelta(days=3)


def order_summary(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "total": order.total,
        "status": order.status,
        "payment_method": order.payment_method,
    }


def order_view(order: OrderModel) -> Dict[str, Any]:
    payments = list(order.payments)
    address = order.shipping_address

    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "subtotal": order.subtotal,
        "tax_amount": order.tax_amount,
        "shipping_amount": order.shipping_amount,
        "discount_amount": order.discount_amount,
        "total": order.total,
        "payment_method": order.payment_method,
        "payment_status": payment_status_of(payments),
        "is_paid": is_paid(payments),
        "can_be_cancelled": can_be_cancelled(order.status),
        "tracking_number": order.tracking_number,
        "notes": order.notes,
        "created_at": order.created_at,
        "shipped_at": order.shipped_at,
        "delivered_at": order.delivered_at,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "quantity": i.quantity,
                "price": i.price,
                "total": i.total,
            }
            for i in order.items
        ],
        "payments": [payment_view(p) for p in payments],
        "shipping_address": {
            "id": address.id,
            "name": address.name,
            "phone": address.phone,
            "address_line_1": address.address_line_1,
            "address_line_2": address.address_line_2,
            "city": address.city,
            "state": address.state,
            "postal_code": address.postal_code,
            "country": address.country,
        } if address else None,
    }


class OrderService:
    """
    Order aggregate after checkout: queries, status changes, cancellation.
    Creating orders lives in CheckoutService.
    """

    def __init__(self, db: Session, payment_service: PaymentService | None = None):
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.payments = payment_service or PaymentService(db)
        self.notification_service = NotificationService()

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, customer_id: int, order_id: int) -> Dict[str, Any]:
        """
        Use Case: read one of the customer's orders.
        """
        order = self.repo.get_order_for_customer(customer_id, order_id)
        if not order:
            raise NotFoundError("Order", order_id)
        return order_view(order)

    def list_orders(self, customer_id: int, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
        orders, total = self.repo.list_for_customer(customer_id, (page - 1) * per_page, per_page)
        return {
            "orders": [order_view(o) for o in orders],
            "pagination": {
                "current_page": page,
                "last_page": max(1, ceil(total / per_page)),
                "per_page": per_page,
                "total": total,
            },
        }

    def tracking(self, order_number: str) -> Dict[str, Any]:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order", order_number)

        estimated = None
        if order.shipped_at and not order.delivered_at:
            estimated = (order.shipped_at + DELIVERY_ESTIMATE).date().isoformat()

        return {
            "order_number": order.order_number,
            "status": order.status,
            "tracking_number": order.tracking_number,
            "created_at": order.created_at,
            "shipped_at": order.shipped_at,
            "delivered_at": order.delivered_at,
            "estimated_delivery": estimated,
        }

    # =====================================================
    # COMMANDS
    # =====================================================
    def update_status(
        self,
        order_id: int,
        status: str,
        notes: str | None = None,
        tracking_number: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: admin moves an order through its lifecycle.

        shipped stamps shipped_at, delivered stamps delivered_at (first time only).
        Setting the current status again only updates notes / tracking number.
        """
        order = self.repo.get_order_for_update(order_id)
        if not order:
            raise NotFoundError("Order", order_id)

        current = order.status
        target = OrderStatus(status).value

        if target != current:
            ensure_transition(current, target)
            order.status = target

            if target == OrderStatus.CANCELLED.value:
                self._release(order)

        now = utcnow()
        if target == OrderStatus.SHIPPED.value and not order.shipped_at:
            order.shipped_at = now
        if target == OrderStatus.DELIVERED.value and not order.delivered_at:
            order.delivered_at = now

        if tracking_number:
            order.tracking_number = tracking_number
        if notes:
            self._append_note(order, notes)

        self.repo.commit()
        logger.info(f"Order {order.order_number}: {current} -> {target}")

        if target != current:
            self._notify(order)

        return order_view(order)

    def cancel(self, customer_id: int, order_id: int) -> Dict[str, Any]:
        """
        Use Case: the customer cancels an order that has not shipped yet.

        Stock goes back to the catalog and open payment attempts are cancelled.
        """
        order = self.repo.get_order_for_update(order_id)
        if not order or order.customer_id != customer_id:
            raise NotFoundError("Order", order_id)

        if not can_be_cancelled(order.status):
            raise OrderNotCancellable(order.order_number, order.status)

        order.status = OrderStatus.CANCELLED.value
        self._release(order)
        self._append_note(order, "Cancelled by customer")

        self.repo.commit()
        logger.info(f"Order {order.order_number} cancelled by customer {customer_id}")

        self._notify(order)
        return order_view(order)

    # =====================================================
    # HELPERS
    # =====================================================
    def _release(self, order: OrderModel) -> None:
        # an order can be cancelled again when transitions are not enforced
        if order.stock_released_at is None:
            for item in order.items:
                self.products.restore_stock(item.product_id, item.quantity)
            order.stock_released_at = utcnow()
        else:
            logger.warning(f"Order {order.order_number}: stock already restored, skipping")

        cancelled = self.payments.cancel_pending(order)
        logger.info(f"Order {order.order_number}: {cancelled} payment(s) cancelled")

    def _notify(self, order: OrderModel) -> None:
        try:
            self.notification_service.send_status_update(order.customer_id, order.id, order.status)
        except Exception:
            # the change is committed, a broker outage must not turn it into an error
            logger.exception(f"Could not queue status update for order {order.order_number}")

    @staticmethod
    def _append_note(order: OrderModel, note: str) -> None:
        order.notes = f"{order.notes}\n{note}" if order.notes else note
