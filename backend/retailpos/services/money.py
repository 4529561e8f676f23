from decimal import Decimal
from typing import Iterable, Union

from retailpos.config import settings

NumberLike = Union[int, float, Decimal]


def _dec(v: NumberLike) -> Decimal:
    # str() first so 100.01 stays 100.01 instead of its binary expansion
    return Decimal(str(v))


def line_total(quantity: int, unit_price: NumberLike) -> float:
    return quantity * float(unit_price)


def sum_totals(items: Iterable) -> float:
    """Sum ``total_price`` over line items (objects or dicts)."""
    total = 0.0
    for it in items:
        value = it["total_price"] if isinstance(it, dict) else it.total_price
        total += value or 0.0
    return total


def price_difference(quantity: int, unit_price: NumberLike, total_price: NumberLike) -> Decimal:
    return abs(_dec(unit_price) * quantity - _dec(total_price))


def totals_match(
    quantity: int,
    unit_price: NumberLike,
    total_price: NumberLike,
    tolerance: NumberLike = None,
) -> bool:
    """True when ``quantity * unit_price`` and ``total_price`` differ by at most ``tolerance``."""
    if tolerance is None:
        tolerance = settings.PRICE_TOLERANCE
    return price_difference(quantity, unit_price, total_price) <= _dec(tolerance)


def format_amount(v: NumberLike) -> str:
    """Plain number used inside messages: 100 -> '100', 100.5 -> '100.5'."""
    return format(_dec(v).normalize(), "f")


def format_currency(v: NumberLike, symbol: str = None) -> str:
    """
    Format an amount for display: ``format_currency(-1234.5) -> '-₹1,234.50'``.
    """
    if symbol is None:
        symbol = settings.CURRENCY_SYMBOL
    x = float(v)
    sign = "-" if x < 0 else ""
    return f"{sign}{symbol}{abs(x):,.2f}"
