"""Payment gateway factory: picks the adapter named by PAYMENT_GATEWAY."""

from shop.services.gateway.http_adapter import HttpPaymentGateway
from shop.services.gateway.mock import MockPaymentGateway
from shop.services.gateway.port import CardDetails, GatewayResult, PaymentGateway
from shop.utils import settings


def build_gateway() -> PaymentGateway:
    if settings.PAYMENT_GATEWAY == "http":
        return HttpPaymentGateway(
            base_url=settings.PAYMENT_GATEWAY_URL,
            api_key=settings.PAYMENT_GATEWAY_API_KEY,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
        )
    return MockPaymentGateway(
        success_rate=settings.GATEWAY_MOCK_SUCCESS_RATE,
        latency=settings.GATEWAY_MOCK_LATENCY,
    )


__all__ = [
    "CardDetails",
    "GatewayResult",
    "PaymentGateway",
    "MockPaymentGateway",
    "HttpPaymentGateway",
    "build_gateway",
]
