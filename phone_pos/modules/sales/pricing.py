"""
modules/sales/pricing.py

Pure order-total math for the sales screen. Re-evaluated on every input
change; no I/O and no rounding (formatting belongs in the UI).

    subtotal    = products + services
    gst / pst   = subtotal * pct / 100      (each on subtotal only)
    grand_total = subtotal + gst + pst -/+ adjustment
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ...utils.validators import float_or_zero

__all__ = [
    "AdjustmentDirection",
    "Totals",
    "compute_totals",
    "clamp_adjustment",
]


class AdjustmentDirection(str, Enum):
    DISCOUNT = "discount"
    SURCHARGE = "surcharge"

    @classmethod
    def parse(cls, value) -> "AdjustmentDirection":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        # stored sales use "receive" for a surcharge
        if v in ("surcharge", "receive"):
            return cls.SURCHARGE
        return cls.DISCOUNT

    @property
    def sign(self) -> int:
        return -1 if self is AdjustmentDirection.DISCOUNT else 1


@dataclass(frozen=True)
class Totals:
    product_subtotal: float
    service_subtotal: float
    subtotal: float
    gst_percent: float
    gst_amount: float
    pst_percent: float
    pst_amount: float
    adjustment: float
    adjustment_direction: AdjustmentDirection
    adjustment_signed: float
    grand_total: float

    @property
    def pre_adjustment_total(self) -> float:
        return self.subtotal + self.gst_amount + self.pst_amount


def compute_totals(
    product_prices: Iterable[float],
    service_prices: Iterable[float],
    gst_percent="",
    pst_percent="",
    adjustment="",
    direction=AdjustmentDirection.DISCOUNT,
) -> Totals:
    """
    Percentages and adjustment may be raw field text; empty or non-numeric
    values count as 0. Required-field checks live in SaleFormState.
    """
    product_subtotal = sum(float(p) for p in product_prices)
    service_subtotal = sum(float(s) for s in service_prices)
    subtotal = product_subtotal + service_subtotal

    gst_pct = float_or_zero(gst_percent)
    pst_pct = float_or_zero(pst_percent)
    gst_amount = subtotal * gst_pct / 100
    pst_amount = subtotal * pst_pct / 100

    d = AdjustmentDirection.parse(direction)
    adj = float_or_zero(adjustment)
    adjustment_signed = d.sign * adj

    return Totals(
        product_subtotal=product_subtotal,
        service_subtotal=service_subtotal,
        subtotal=subtotal,
        gst_percent=gst_pct,
        gst_amount=gst_amount,
        pst_percent=pst_pct,
        pst_amount=pst_amount,
        adjustment=adj,
        adjustment_direction=d,
        adjustment_signed=adjustment_signed,
        grand_total=subtotal + gst_amount + pst_amount + adjustment_signed,
    )


def clamp_adjustment(text: str, *, subtotal: float, gst_amount: float, pst_amount: float) -> str:
    """
    Input-layer policy for the adjustment field: the entered amount may not
    exceed subtotal + gst + pst. Over-limit input is replaced by the limit
    with two decimals; anything else is returned untouched.
    """
    limit = subtotal + gst_amount + pst_amount
    if float_or_zero(text) > limit:
        return f"{max(limit, 0.0):.2f}"
    return text
