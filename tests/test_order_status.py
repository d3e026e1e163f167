"""Tests for the order status table."""

import pytest

from shop.domain.errors import InvalidStatusTransition
from shop.domain.order_status import OrderStatus, can_be_cancelled, can_transition, ensure_transition


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        ("pending", "confirmed"),
        ("pending", "cancelled"),
        ("confirmed", "processing"),
        ("confirmed", "shipped"),
        ("processing", "shipped"),
        ("shipped", "delivered"),
        ("delivered", "refunded"),
        ("cancelled", "refunded"),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        ensure_transition(current, target, strict=True)

    @pytest.mark.parametrize("current,target", [
        ("delivered", "pending"),
        ("shipped", "cancelled"),
        ("refunded", "confirmed"),
        ("pending", "shipped"),
        ("cancelled", "confirmed"),
    ])
    def test_rejected_in_strict_mode(self, current, target):
        with pytest.raises(InvalidStatusTransition) as exc:
            ensure_transition(current, target, strict=True)

        assert exc.value.current == current
        assert exc.value.target == target

    def test_permissive_mode_allows_anything(self):
        ensure_transition("delivered", "pending", strict=False)

    def test_unknown_status_rejected_in_both_modes(self):
        with pytest.raises(ValueError):
            ensure_transition("pending", "lost", strict=False)

    def test_strict_flag_from_settings(self, monkeypatch):
        from shop.domain import order_status

        monkeypatch.setattr(order_status.settings, "STRICT_STATUS_TRANSITIONS", False)
        ensure_transition("refunded", "pending")

    def test_refunded_is_final(self):
        assert not any(can_transition("refunded", s.value) for s in OrderStatus)


class TestCancellable:
    @pytest.mark.parametrize("status", ["pending", "confirmed", "processing"])
    def test_before_shipping(self, status):
        assert can_be_cancelled(status)

    @pytest.mark.parametrize("status", ["shipped", "delivered", "cancelled", "refunded"])
    def test_after_shipping(self, status):
        assert not can_be_cancelled(status)
