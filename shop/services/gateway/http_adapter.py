# shop/services/gateway/http_adapter.py
from decimal import Decimal

import requests
from requests import RequestException

from shop.domain.errors import TransientGatewayError
from shop.services.gateway.port import CardDetails, GatewayResult, PaymentGateway
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class HttpPaymentGateway(PaymentGateway):
    """JSON-over-HTTP gateway client.

    Network errors, timeouts and 5xx answers raise TransientGatewayError;
    402 or a "declined" body comes back as an unsuccessful GatewayResult.
    """

    name = "http"

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 5, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    def _post(self, path: str, payload: dict, idempotency_key: str | None = None) -> GatewayResult:
        url = f"{self.base_url}{path}"
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        logger.info(f"Gateway POST {url}")

        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except RequestException as e:
            raise TransientGatewayError(f"Payment gateway unreachable: {e}") from e

        if resp.status_code >= 500:
            raise TransientGatewayError(f"Payment gateway error {resp.status_code}")

        body = resp.json() if resp.content else {}

        if resp.status_code == 402 or body.get("status") == "declined":
            return GatewayResult(
                success=False,
                status=body.get("status", "declined"),
                response=body,
                failure_reason=body.get("message") or "Payment declined",
            )

        resp.raise_for_status()

        return GatewayResult(
            success=True,
            transaction_id=body.get("transaction_id"),
            status=body.get("status"),
            response=body,
        )

    def authorize(self, amount: Decimal, currency: str, card: CardDetails, idempotency_key: str) -> GatewayResult:
        payload = {
            "amount": str(amount),
            "currency": currency,
            "card": {
                "number": card.number,
                "expiry_month": card.expiry_month,
                "expiry_year": card.expiry_year,
                "cvv": card.cvv,
                "holder_name": card.holder_name,
            },
        }
        return self._post("/authorizations", payload, idempotency_key)

    def capture(self, transaction_id: str, amount: Decimal) -> GatewayResult:
        return self._post(f"/authorizations/{transaction_id}/capture", {"amount": str(amount)})

    def void(self, transaction_id: str) -> GatewayResult:
        return self._post(f"/authorizations/{transaction_id}/void", {})

    def refund(self, transaction_id: str, amount: Decimal, reason: str) -> GatewayResult:
        return self._post(f"/charges/{transaction_id}/refunds", {"amount": str(amount), "reason": reason})
