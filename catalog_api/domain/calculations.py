"""Catalog price, weight and stock calculations.

Pure functions with no I/O. None of them raise: invalid input yields a
safe default so a single bad field never breaks a catalog page.
"""

import math
from typing import Any

VOLUMETRIC_DIVISOR = 4000
DEFAULT_TRANSFER_PERCENT = 2


def _number(value: Any) -> float | None:
    """Coerce a raw numeric input, returning None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def discount_percent(price: Any, sale_price: Any) -> str:
    """Percentage saved by the sale price, formatted as ``"<n>%"``.

    Args:
        price: Regular price.
        sale_price: Discounted price.

    Returns:
        "0%" unless 0 < sale_price < price and the rounded percentage is
        within [0, 100).
    """
    price = _number(price)
    sale_price = _number(sale_price)
    if price is None or sale_price is None:
        return "0%"
    if price <= 0 or sale_price <= 0 or sale_price >= price:
        return "0%"

    percent = _round_half_up((price - sale_price) / price * 100)
    if percent < 0 or percent >= 100:
        return "0%"
    return f"{percent}%"


def transfer_price(
    price: Any,
    sale_price: Any,
    transfer_percent: Any = DEFAULT_TRANSFER_PERCENT,
) -> int:
    """Bank-transfer price: the effective price minus ``transfer_percent``.

    Args:
        price: Regular price.
        sale_price: Discounted price; used as the base when positive.
        transfer_percent: Transfer discount percentage.

    Returns:
        Rounded, non-negative transfer price. 0 when both prices are <= 0.
    """
    price = _number(price) or 0.0
    sale_price = _number(sale_price) or 0.0
    percent = _number(transfer_percent)
    if percent is None:
        percent = DEFAULT_TRANSFER_PERCENT

    if price <= 0 and sale_price <= 0:
        return 0

    base = sale_price if sale_price > 0 else price
    return _round_half_up(max(0.0, base - base * percent / 100))


def volumetric_weight(
    width: Any,
    depth: Any,
    height: Any,
    weight: Any,
    country_code: str = "CL",
) -> float:
    """Shipping weight: the larger of volumetric and real weight.

    Peru ships by real weight only.

    Args:
        width: Package width.
        depth: Package depth.
        height: Package height.
        weight: Real weight.
        country_code: Deployment country code.

    Returns:
        Shipping weight; 0 when no usable weight can be derived.
    """
    real = _number(weight) or 0.0
    if country_code == "PE":
        return real

    width = _number(width) or 0.0
    depth = _number(depth) or 0.0
    height = _number(height) or 0.0
    return max(width * depth * height / VOLUMETRIC_DIVISOR, real)


def available_stock(
    inventory_level: Any,
    safety_stock: Any = 0,
    available_to_sell: Any = None,
) -> int:
    """Sellable units for a product or variant.

    An explicit ``available_to_sell`` figure wins over the inventory level
    minus the safety margin.

    Args:
        inventory_level: Units on hand.
        safety_stock: Units held back as safety margin.
        available_to_sell: Externally computed sellable units, if known.

    Returns:
        Non-negative stock.
    """
    if available_to_sell is not None:
        return int(max(0.0, _number(available_to_sell) or 0.0))

    level = _number(inventory_level) or 0.0
    safety = _number(safety_stock) or 0.0
    return int(max(0.0, level - safety))
