# shop/domain/pricing.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from shop.utils import settings

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal


def line_total(unit_price, quantity: int) -> Decimal:
    return money(Decimal(str(unit_price)) * quantity)


def shipping_for(subtotal: Decimal) -> Decimal:
    if subtotal <= ZERO or subtotal > settings.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return money(settings.SHIPPING_COST)


def recompute_totals(lines: Iterable[Tuple[Decimal, int]], discount=ZERO) -> Totals:
    """Totals of a cart or order from its (unit_price, quantity) lines.

    Pure: the cached money columns on carts and orders are always written from
    this, never edited by hand.
    """
    subtotal = sum((line_total(price, qty) for price, qty in lines), ZERO)
    tax = money(subtotal * settings.TAX_RATE)
    shipping = shipping_for(subtotal)
    discount = min(money(discount), subtotal)
    total = max(ZERO, subtotal + tax + shipping - discount)

    return Totals(
        subtotal=money(subtotal),
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=money(total),
    )
