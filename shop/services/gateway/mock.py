# shop/services/gateway/mock.py
import random
import time
import uuid
from decimal import Decimal

from shop.domain.errors import TransientGatewayError
from shop.services.gateway.port import CardDetails, GatewayResult, PaymentGateway
from shop.utils.logging import get_logger

logger = get_logger(__name__)

# test cards, same idea as the big providers' sandbox numbers
DECLINE_CARD = "4000000000000002"
PROCESSING_ERROR_CARD = "4000000000000119"


def _ref(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:13].upper()}"


class MockPaymentGateway(PaymentGateway):
    """In-process gateway: simulated latency and a configurable approval rate."""

    name = "mock"

    def __init__(self, success_rate: float = 0.9, latency: float = 0.0, rng: random.Random | None = None):
        self.success_rate = success_rate
        self.latency = latency
        self.rng = rng or random.Random()
        self.calls: list[dict] = []

    def _simulate_latency(self):
        if self.latency > 0:
            time.sleep(self.latency)

    def authorize(self, amount: Decimal, currency: str, card: CardDetails, idempotency_key: str) -> GatewayResult:
        self.calls.append({
            "method": "authorize",
            "amount": amount,
            "currency": currency,
            "last_four": card.last_four,
            "idempotency_key": idempotency_key,
        })
        self._simulate_latency()

        if card.number == PROCESSING_ERROR_CARD:
            logger.warning(f"Mock gateway processing error for {idempotency_key}")
            raise TransientGatewayError("Payment gateway temporarily unavailable")

        approved = card.number != DECLINE_CARD and self.rng.random() < self.success_rate

        if not approved:
            return GatewayResult(
                success=False,
                status="declined",
                response={"status": "declined", "decline_code": "insufficient_funds"},
                failure_reason="Payment declined by bank",
            )

        return GatewayResult(
            success=True,
            transaction_id=_ref("TXN"),
            status="approved",
            response={
                "status": "approved",
                "authorization_code": uuid.uuid4().hex[:8].upper(),
                "last_four": card.last_four,
            },
        )

    def capture(self, transaction_id: str, amount: Decimal) -> GatewayResult:
        self.calls.append({"method": "capture", "transaction_id": transaction_id, "amount": amount})
        return GatewayResult(
            success=True,
            transaction_id=transaction_id,
            status="captured",
            response={"status": "captured"},
        )

    def void(self, transaction_id: str) -> GatewayResult:
        self.calls.append({"method": "void", "transaction_id": transaction_id})
        return GatewayResult(
            success=True,
            transaction_id=transaction_id,
            status="voided",
            response={"status": "voided"},
        )

    def refund(self, transaction_id: str, amount: Decimal, reason: str) -> GatewayResult:
        self.calls.append({
            "method": "refund",
            "transaction_id": transaction_id,
            "amount": amount,
            "reason": reason,
        })
        self._simulate_latency()
        return GatewayResult(
            success=True,
            transaction_id=_ref("RFD"),
            status="refunded",
            response={"status": "refunded", "original_transaction_id": transaction_id},
        )
