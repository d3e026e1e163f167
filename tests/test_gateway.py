import random
from decimal import Decimal

import pytest
import requests

from shop.domain.errors import TransientGatewayError
from shop.services.gateway import CardDetails, HttpPaymentGateway, MockPaymentGateway, build_gateway
from shop.services.gateway.mock import DECLINE_CARD, PROCESSING_ERROR_CARD
from shop.utils import settings

CARD = CardDetails(number="4111111111111111", expiry_month=12, expiry_year=2099, cvv="123", holder_name="Sara Ali")


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.body = body or {}
        self.content = b"{}" if body is not None else b""

    def json(self):
        return self.body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.headers = {}
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def http_gateway(*responses):
    session = FakeSession(*responses)
    return HttpPaymentGateway("https://pay.example.com/", api_key="sk_test", timeout=3, session=session), session


class TestHttpGateway:
    def test_authorize_approved(self):
        gateway, session = http_gateway(FakeResponse(200, {"status": "approved", "transaction_id": "ch_1"}))

        result = gateway.authorize(Decimal("287.50"), "SAR", CARD, "order-1-payment-1")

        assert result.success is True
        assert result.transaction_id == "ch_1"
        sent = session.requests[0]
        assert sent["url"] == "https://pay.example.com/authorizations"
        assert sent["json"]["amount"] == "287.50"
        assert sent["headers"] == {"Idempotency-Key": "order-1-payment-1"}
        assert sent["timeout"] == 3
        assert session.headers["Authorization"] == "Bearer sk_test"

    @pytest.mark.parametrize("response", [
        FakeResponse(402, {"message": "Insufficient funds"}),
        FakeResponse(200, {"status": "declined", "message": "Insufficient funds"}),
    ])
    def test_decline(self, response):
        gateway, _ = http_gateway(response)

        result = gateway.authorize(Decimal("10"), "SAR", CARD, "k")

        assert result.success is False
        assert result.failure_reason == "Insufficient funds"

    @pytest.mark.parametrize("response", [
        FakeResponse(503),
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
    ])
    def test_transient(self, response):
        gateway, _ = http_gateway(response)

        with pytest.raises(TransientGatewayError):
            gateway.capture("ch_1", Decimal("10"))

    def test_refund_path(self):
        gateway, session = http_gateway(FakeResponse(200, {"status": "refunded", "transaction_id": "re_1"}))

        result = gateway.refund("ch_1", Decimal("5.00"), "Damaged")

        assert result.success is True
        assert session.requests[0]["url"] == "https://pay.example.com/charges/ch_1/refunds"
        assert session.requests[0]["json"] == {"amount": "5.00", "reason": "Damaged"}

    def test_void_path(self):
        gateway, session = http_gateway(FakeResponse(200, {"status": "voided", "transaction_id": "ch_1"}))

        result = gateway.void("ch_1")

        assert result.success is True
        assert session.requests[0]["url"] == "https://pay.example.com/authorizations/ch_1/void"


class TestMockGateway:
    def test_test_cards(self):
        gateway = MockPaymentGateway(success_rate=1.0)
        decline = CardDetails(DECLINE_CARD, 12, 2099, "123", "X")
        broken = CardDetails(PROCESSING_ERROR_CARD, 12, 2099, "123", "X")

        assert gateway.authorize(Decimal("1"), "SAR", decline, "k").success is False
        with pytest.raises(TransientGatewayError):
            gateway.authorize(Decimal("1"), "SAR", broken, "k")

    def test_success_rate(self):
        gateway = MockPaymentGateway(success_rate=0.0, rng=random.Random(1))

        assert gateway.authorize(Decimal("1"), "SAR", CARD, "k").success is False

    def test_calls_recorded_without_card_number(self):
        gateway = MockPaymentGateway(success_rate=1.0)

        gateway.authorize(Decimal("1"), "SAR", CARD, "k")

        assert gateway.calls[0]["last_four"] == "1111"
        assert CARD.number not in str(gateway.calls)


class TestBuildGateway:
    def test_mock_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "PAYMENT_GATEWAY", "mock")

        assert isinstance(build_gateway(), MockPaymentGateway)

    def test_http(self, monkeypatch):
        monkeypatch.setattr(settings, "PAYMENT_GATEWAY", "http")
        monkeypatch.setattr(settings, "PAYMENT_GATEWAY_URL", "https://pay.example.com")

        gateway = build_gateway()

        assert isinstance(gateway, HttpPaymentGateway)
        assert gateway.base_url == "https://pay.example.com"
