# shop/domain/errors.py
"""Exceptions raised by the shop services.

Every class carries the HTTP status the API layer answers with, so routers
never translate errors one by one.
"""


class ShopError(Exception):
    """Base exception for all shop errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ShopError):
    status_code = 422


class PhoneAlreadyRegistered(ValidationError):
    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Phone number {phone} is already registered")


class InvalidCardDetails(ValidationError):
    pass


class NotFoundError(ShopError):
    status_code = 404

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class AuthenticationRequired(ShopError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class BusinessRuleViolation(ShopError):
    status_code = 400


class EmptyCart(BusinessRuleViolation):
    def __init__(self):
        super().__init__("Cart is empty")


class InsufficientStock(BusinessRuleViolation):
    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class AlreadyPaid(BusinessRuleViolation):
    def __init__(self, order_number: str):
        super().__init__(f"Order {order_number} is already paid")


class OrderNotPayable(BusinessRuleViolation):
    pass


class NotRefundable(BusinessRuleViolation):
    pass


class InvalidAmount(BusinessRuleViolation):
    pass


class OrderNotCancellable(BusinessRuleViolation):
    def __init__(self, order_number: str, status: str):
        self.status = status
        super().__init__(f"Order {order_number} cannot be cancelled in status '{status}'")


class InvalidStatusTransition(BusinessRuleViolation):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from '{current}' to '{target}'")


class DiscountNotApplicable(BusinessRuleViolation):
    def __init__(self, code: str, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(f"Discount {code} cannot be applied: {reason}")


class ConcurrencyConflict(ShopError):
    status_code = 409


class GatewayError(ShopError):
    status_code = 502


class TransientGatewayError(GatewayError):
    """Gateway unreachable or failing; the call may be retried."""

    status_code = 503


class GatewayDeclined(GatewayError):
    """Gateway refused the operation; retrying will not help."""

    status_code = 402


class OrderCreationFailed(ShopError):
    status_code = 500

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to create order: {cause}")
