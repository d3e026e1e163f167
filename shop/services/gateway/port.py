"""Payment gateway port.

The ledger only talks to this interface; the mock and the HTTP adapter are
interchangeable behind it. An authorization whose capture fails is voided,
so a later attempt never leaves two holds on the card.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CardDetails:
    number: str
    expiry_month: int
    expiry_year: int
    cvv: str
    holder_name: str

    @property
    def last_four(self) -> str:
        return self.number[-4:]


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway call. A decline is success=False, not an exception."""

    success: bool
    transaction_id: str | None = None
    status: str | None = None
    response: dict = field(default_factory=dict)
    failure_reason: str | None = None


class PaymentGateway(ABC):
    name = "gateway"

    @abstractmethod
    def authorize(
        self,
        amount: Decimal,
        currency: str,
        card: CardDetails,
        idempotency_key: str,
    ) -> GatewayResult:
        """Reserve funds on the card."""

    @abstractmethod
    def capture(self, transaction_id: str, amount: Decimal) -> GatewayResult:
        """Collect previously authorized funds."""

    @abstractmethod
    def void(self, transaction_id: str) -> GatewayResult:
        """Release an authorization that was never captured."""

    @abstractmethod
    def refund(self, transaction_id: str, amount: Decimal, reason: str) -> GatewayResult:
        """Return funds of a captured charge."""
