# shop/services/payment_service.py
from decimal import Decimal
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session

from shop.data.models.order import OrderModel
from shop.data.models.payment import (
    MANUAL_METHODS,
    METHOD_BANK_TRANSFER,
    METHOD_CARD,
    METHOD_CASH_ON_DELIVERY,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_REFUNDED,
    PaymentModel,
)
from shop.domain.errors import (
    AlreadyPaid,
    BusinessRuleViolation,
    ConcurrencyConflict,
    GatewayDeclined,
    InvalidAmount,
    InvalidCardDetails,
    InvalidStatusTransition,
    NotFoundError,
    NotRefundable,
    OrderNotPayable,
    TransientGatewayError,
)
from shop.domain.order_status import OrderStatus, ensure_transition
from shop.domain.pricing import ZERO, money
from shop.repos.order_repo import OrderRepo
from shop.repos.payment_repo import PaymentRepo
from shop.services.gateway import CardDetails, GatewayResult, PaymentGateway, build_gateway
from shop.utils import settings
from shop.utils.clock import utcnow
from shop.utils.logging import get_logger
from shop.utils.retry import gateway_retry

logger = get_logger(__name__)

_MANUAL_PREFIX = {
    METHOD_CASH_ON_DELIVERY: "COD",
    METHOD_BANK_TRANSFER: "BT",
}

PAYMENT_METHODS = [
    {
        "id": METHOD_CARD,
        "name": "Credit / debit card",
        "description": "Pay now with Visa, Mastercard or mada",
        "enabled": True,
    },
    {
        "id": METHOD_CASH_ON_DELIVERY,
        "name": "Cash on delivery",
        "description": "Pay the courier when the order arrives",
        "enabled": True,
    },
    {
        "id": METHOD_BANK_TRANSFER,
        "name": "Bank transfer",
        "description": "Transfer the total; the order ships once the transfer is confirmed",
        "enabled": True,
    },
]


def payment_view(payment: PaymentModel) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": payment.amount,
        "status": payment.status,
        "payment_method": payment.payment_method,
        "transaction_id": payment.transaction_id,
        "gateway": payment.gateway,
        "failure_reason": payment.failure_reason,
        "refund_reason": payment.refund_reason,
        "refunded_payment_id": payment.refunded_payment_id,
        "processed_at": payment.processed_at,
    }


def charges(payments: Iterable[PaymentModel]) -> list[PaymentModel]:
    return [p for p in payments if not p.is_refund]


def payment_status_of(payments: Iterable[PaymentModel]) -> str:
    """Status of the latest charge attempt, "unpaid" when there is none."""
    attempts = charges(payments)
    if not attempts:
        return "unpaid"
    return max(attempts, key=lambda p: p.id).status


def is_paid(payments: Iterable[PaymentModel]) -> bool:
    return any(p.status == STATUS_COMPLETED for p in charges(payments))


class PaymentService:
    """
    Payment ledger.

    One row per attempt; refunds are separate negative rows pointing at the
    charge they return, the charge itself is never rewritten except for its
    status.
    """

    def __init__(self, db: Session, gateway: PaymentGateway | None = None):
        self.repo = PaymentRepo(db)
        self.orders = OrderRepo(db)
        self.gateway = gateway or build_gateway()

    # =====================================================
    # QUERY
    # =====================================================
    def status(self, customer_id: int, order_id: int) -> Dict[str, Any]:
        order = self._customer_order(customer_id, order_id)
        payments = self.repo.list_for_order(order.id)

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "total_amount": order.total,
            "is_paid": is_paid(payments),
            "payment_status": payment_status_of(payments),
            "payments": [payment_view(p) for p in payments],
        }

    @staticmethod
    def methods() -> list[Dict[str, Any]]:
        return [m for m in PAYMENT_METHODS if m["enabled"]]

    # =====================================================
    # COMMANDS
    # =====================================================
    def process(
        self,
        customer_id: int,
        order_id: int,
        method: str,
        card: CardDetails | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: pay for one of the customer's orders.

        The order row stays locked until the attempt is stored, so a double
        submit finds the first attempt in flight.
        """
        order = self.orders.get_order_for_update(order_id)
        if not order or order.customer_id != customer_id:
            raise NotFoundError("Order", order_id)
        return self.process_for_order(order, method, card)

    def process_for_order(self, order: OrderModel, method: str, card: CardDetails | None = None) -> Dict[str, Any]:
        if self.repo.has_completed_charge(order.id):
            raise AlreadyPaid(order.order_number)

        if self.repo.has_charge_in_flight(order.id):
            raise ConcurrencyConflict(f"A payment for order {order.order_number} is already being processed")

        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise OrderNotPayable(f"Order {order.order_number} cannot be paid in status '{order.status}'")

        if method in MANUAL_METHODS:
            return self._process_manual(order, method)

        if method != METHOD_CARD:
            raise OrderNotPayable(f"Unsupported payment method '{method}'")

        if card is None:
            raise InvalidCardDetails("Card details are required for card payments")

        return self._process_card(order, card)

    def mark_as_completed(
        self,
        payment_id: int,
        transaction_id: str | None = None,
        gateway_response: dict | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: gateway callback / admin confirms a payment.

        A pending order moves to confirmed.
        """
        payment = self._payment(payment_id)
        order = payment.order

        if payment.is_refund or payment.status not in (STATUS_PENDING, STATUS_PROCESSING, STATUS_FAILED):
            raise BusinessRuleViolation(f"Payment {payment.id} cannot be completed in status '{payment.status}'")

        if self.repo.has_completed_charge(order.id):
            raise AlreadyPaid(order.order_number)

        payment.status = STATUS_COMPLETED
        payment.failure_reason = None
        payment.processed_at = utcnow()
        if transaction_id:
            payment.transaction_id = transaction_id
        if gateway_response is not None:
            payment.gateway_response = gateway_response

        self._confirm(order)
        self.repo.commit()

        logger.info(f"Payment {payment.id} for order {order.order_number} marked as completed")
        return {"payment": payment_view(payment), "order": {"id": order.id, "status": order.status}}

    def mark_as_failed(self, payment_id: int, reason: str, gateway_response: dict | None = None) -> Dict[str, Any]:
        """
        Use Case: gateway callback / admin rejects a payment.

        The order is left as it is, so it can be paid again with a new attempt.
        """
        payment = self._payment(payment_id)

        if payment.is_refund or payment.status not in (STATUS_PENDING, STATUS_PROCESSING):
            raise BusinessRuleViolation(f"Payment {payment.id} cannot be failed in status '{payment.status}'")

        payment.status = STATUS_FAILED
        payment.failure_reason = reason
        payment.processed_at = utcnow()
        if gateway_response is not None:
            payment.gateway_response = gateway_response

        self.repo.commit()

        logger.warning(f"Payment {payment.id} marked as failed: {reason}")
        return {"payment": payment_view(payment), "order": {"id": payment.order.id, "status": payment.order.status}}

    def refund(
        self,
        customer_id: int,
        payment_id: int,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: refund a completed charge, fully (no amount) or partially.

        The refund row is reserved as processing and committed under the charge
        row lock before the gateway is called, so overlapping refunds of the same
        charge see each other in the balance. The order becomes refunded once
        completed refunds cover its total.
        """
        payment = self.repo.get_payment_for_customer_for_update(customer_id, payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)

        if payment.is_refund or payment.status != STATUS_COMPLETED or payment.amount <= ZERO:
            raise NotRefundable(f"Payment {payment.id} is not refundable (status '{payment.status}')")

        balance = money(payment.amount) - self.repo.reserved_refund_total(payment.id)

        amount = balance if amount is None else money(amount)
        if amount <= ZERO or amount > balance:
            raise InvalidAmount(f"Refund amount must be greater than 0 and at most {balance}")

        refund = self.repo.create_payment(
            PaymentModel(
                order=payment.order,
                amount=-amount,
                refunded_payment_id=payment.id,
                payment_method=payment.payment_method,
                status=STATUS_PROCESSING,
                transaction_id=f"REFUND-{payment.transaction_id}",
                gateway=payment.gateway,
                refund_reason=reason,
            )
        )
        self.repo.commit()

        response = {}
        if payment.payment_method == METHOD_CARD:
            try:
                result = self._refund_at_gateway(payment.transaction_id, amount, reason or "")
            except TransientGatewayError as e:
                self._fail_attempt(refund, e.message)
                logger.error(f"Gateway unavailable for refund {refund.id} of payment {payment.id}: {e.message}")
                raise

            if not result.success:
                self._fail_attempt(refund, result.failure_reason or "Refund declined by the payment gateway")
                logger.warning(f"Refund of payment {payment.id} declined: {refund.failure_reason}")
                raise GatewayDeclined(refund.failure_reason)
            response = result.response

        refund.status = STATUS_COMPLETED
        refund.gateway_response = response
        refund.processed_at = utcnow()
        self.repo.flush()

        if self.repo.refunded_total(payment.id) >= money(payment.amount):
            payment.status = STATUS_REFUNDED

        order = payment.order
        if self.repo.order_refunded_total(order.id) >= money(order.total) and order.status != OrderStatus.REFUNDED.value:
            try:
                ensure_transition(order.status, OrderStatus.REFUNDED.value)
                order.status = OrderStatus.REFUNDED.value
            except InvalidStatusTransition as e:
                logger.warning(f"Order {order.order_number} fully refunded but kept its status: {e.message}")

        self.repo.commit()

        logger.info(f"Refunded {amount} of payment {payment.id} (order {order.order_number})")
        return {
            "id": refund.id,
            "amount": amount,
            "reason": reason,
            "processed_at": refund.processed_at,
            "refundable_balance": money(payment.amount) - self.repo.reserved_refund_total(payment.id),
            "payment_status": payment.status,
            "order_status": order.status,
        }

    def cancel_pending(self, order: OrderModel) -> int:
        """Cancel open attempts of an order (no commit)."""
        cancelled = 0
        for payment in charges(order.payments):
            if payment.status in (STATUS_PENDING, STATUS_PROCESSING):
                payment.status = STATUS_CANCELLED
                cancelled += 1
        return cancelled

    # =====================================================
    # HELPERS
    # =====================================================
    def _customer_order(self, customer_id: int, order_id: int) -> OrderModel:
        order = self.orders.get_order_for_customer(customer_id, order_id)
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def _payment(self, payment_id: int) -> PaymentModel:
        payment = self.repo.get_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    @staticmethod
    def _confirm(order: OrderModel) -> None:
        if order.status == OrderStatus.PENDING.value:
            ensure_transition(order.status, OrderStatus.CONFIRMED.value)
            order.status = OrderStatus.CONFIRMED.value

    def _process_manual(self, order: OrderModel, method: str) -> Dict[str, Any]:
        # nothing to call, someone confirms the money later (mark_as_completed)
        payment = self.repo.create_payment(
            PaymentModel(
                order=order,
                amount=order.total,
                payment_method=method,
                status=STATUS_PENDING,
                transaction_id=f"{_MANUAL_PREFIX[method]}-{order.order_number}",
                gateway="manual",
                gateway_response={"status": "awaiting_confirmation"},
            )
        )
        self._confirm(order)
        self.repo.commit()

        logger.info(f"Order {order.order_number} confirmed with {method}, payment {payment.id} pending")
        return {
            "success": True,
            "message": "Order confirmed, payment will be collected manually",
            "payment": payment_view(payment),
            "order": {"id": order.id, "status": order.status},
        }

    def _process_card(self, order: OrderModel, card: CardDetails) -> Dict[str, Any]:
        # the attempt is stored before calling out, a crash mid-call still leaves a trace
        payment = self.repo.create_payment(
            PaymentModel(
                order=order,
                amount=order.total,
                payment_method=METHOD_CARD,
                status=STATUS_PROCESSING,
                gateway=self.gateway.name,
            )
        )
        self.repo.commit()

        idempotency_key = f"order-{order.id}-payment-{payment.id}"
        total = money(order.total)

        try:
            result = self._authorize(total, card, idempotency_key)
        except TransientGatewayError as e:
            self._fail_attempt(payment, e.message)
            logger.error(f"Gateway unavailable for order {order.order_number}: {e.message}")
            raise

        if result.success:
            try:
                captured = self._capture(result.transaction_id, total)
            except TransientGatewayError as e:
                # the hold would otherwise sit on the card until the gateway expires it
                payment.transaction_id = result.transaction_id
                payment.gateway_response = {
                    **result.response,
                    "voided": self._release_authorization(result.transaction_id),
                }
                self._fail_attempt(payment, e.message)
                logger.error(f"Capture failed for order {order.order_number}: {e.message}")
                raise

            result = GatewayResult(
                success=captured.success,
                transaction_id=result.transaction_id,
                status=captured.status,
                response={**result.response, "capture": captured.response},
                failure_reason=captured.failure_reason,
            )

        payment.transaction_id = result.transaction_id
        payment.gateway_response = result.response
        payment.processed_at = utcnow()

        if not result.success:
            payment.status = STATUS_FAILED
            payment.failure_reason = result.failure_reason or "Payment declined"
            self.repo.commit()

            logger.warning(f"Card payment {payment.id} for order {order.order_number} declined")
            return {
                "success": False,
                "message": f"Payment failed: {payment.failure_reason}",
                "payment": payment_view(payment),
                "order": {"id": order.id, "status": order.status},
            }

        payment.status = STATUS_COMPLETED
        self._confirm(order)
        self.repo.commit()

        logger.info(f"Card payment {payment.id} for order {order.order_number} completed")
        return {
            "success": True,
            "message": "Payment processed successfully",
            "payment": payment_view(payment),
            "order": {"id": order.id, "status": order.status},
        }

    def _fail_attempt(self, payment: PaymentModel, reason: str) -> None:
        payment.status = STATUS_FAILED
        payment.failure_reason = reason
        payment.processed_at = utcnow()
        self.repo.commit()

    def _release_authorization(self, transaction_id: str) -> bool:
        try:
            released = self._void(transaction_id).success
        except TransientGatewayError as e:
            released = False
            logger.error(f"Authorization {transaction_id} left open at the gateway: {e.message}")
        return released

    @gateway_retry()
    def _authorize(self, amount: Decimal, card: CardDetails, idempotency_key: str) -> GatewayResult:
        return self.gateway.authorize(amount, settings.CURRENCY, card, idempotency_key)

    @gateway_retry()
    def _capture(self, transaction_id: str, amount: Decimal) -> GatewayResult:
        return self.gateway.capture(transaction_id, amount)

    @gateway_retry()
    def _void(self, transaction_id: str) -> GatewayResult:
        return self.gateway.void(transaction_id)

    @gateway_retry()
    def _refund_at_gateway(self, transaction_id: str, amount: Decimal, reason: str) -> GatewayResult:
        return self.gateway.refund(transaction_id, amount, reason)
