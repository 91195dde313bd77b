"""
Pricing Domain - Calculations.

All amounts are Decimal and quantized to the cent. ``None`` inputs are
treated as zero except where a missing value has meaning (bloc quantity).
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_COEFFICIENT = Decimal("1.2")


def to_decimal(value: Optional[Number], default: Decimal = Decimal("0")) -> Decimal:
    """Coerce a loosely typed value to Decimal."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total(amounts: Iterable[Optional[Number]]) -> Decimal:
    return money(sum((to_decimal(a) for a in amounts), Decimal("0")))


@dataclass(frozen=True)
class LineTotals:
    """Computed totals of a single article line."""

    unit_price: Decimal
    prix_total_ht: Decimal
    total_ttc: Decimal


def line_totals(
    quantite: Optional[Number],
    catalog_price: Optional[Number],
    tva: Optional[Number],
    price_override: Optional[Number] = None,
) -> LineTotals:
    """
    Compute HT and TTC totals of a line.

    The override price (``nouv_prix``) wins over the catalog price when set.
    """
    unit_price = to_decimal(price_override if price_override not in (None, "") else catalog_price)
    ht = money(unit_price * to_decimal(quantite))
    ttc = money(ht * (1 + to_decimal(tva) / HUNDRED))
    return LineTotals(unit_price=money(unit_price), prix_total_ht=ht, total_ttc=ttc)


def unit_price(pt: Optional[Number], quantite: Optional[Number]) -> Optional[Decimal]:
    """
    Bloc unit price.

    None when the quantity is missing or not strictly positive.
    """
    if quantite is None or quantite == "":
        return None
    qty = to_decimal(quantite)
    if qty <= 0:
        return None
    return money(to_decimal(pt) / qty)


def margin_coefficient(
    marge_brut: Optional[Number],
    marge_net: Optional[Number],
    default: Decimal = DEFAULT_COEFFICIENT,
) -> Decimal:
    """
    Sell-price coefficient ``1 / (1 - brut/100 - net/100)``.

    Falls back to ``default`` when the denominator is not a positive
    finite number.
    """
    denominator = 1 - to_decimal(marge_brut) / HUNDRED - to_decimal(marge_net) / HUNDRED
    if not denominator.is_finite() or denominator <= 0:
        return default
    return Decimal(1) / denominator


def sell_price(cout: Number, coefficient: Decimal) -> Decimal:
    return money(to_decimal(cout) * coefficient)
