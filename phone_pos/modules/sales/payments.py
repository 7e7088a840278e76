"""
modules/sales/payments.py

Pure helpers for the cash / bank / card payment split. Used twice per sale
with independent state: the main payment against the grand total, and the
optional middleman side-payment against the middleman amount.

Do not import repos or touch the store here.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ...utils.validators import float_or_zero
from .errors import Overpayment

__all__ = [
    "clamp_non_negative",
    "PaymentSplit",
    "SplitResult",
    "validate_split",
    "MiddlemanDirection",
    "final_amounts",
]


def clamp_non_negative(x: float) -> float:
    """Return x if x > 0, else 0.0."""
    return x if x > 0.0 else 0.0


@dataclass(frozen=True)
class PaymentSplit:
    cash: float = 0.0
    bank: float = 0.0
    card: float = 0.0

    @classmethod
    def from_text(cls, cash="", bank="", card="") -> "PaymentSplit":
        return cls(float_or_zero(cash), float_or_zero(bank), float_or_zero(card))

    @property
    def total(self) -> float:
        return self.cash + self.bank + self.card

    @property
    def is_zero(self) -> bool:
        return self.cash == 0 and self.bank == 0 and self.card == 0

    def scaled(self, sign: int) -> "PaymentSplit":
        return PaymentSplit(self.cash * sign, self.bank * sign, self.card * sign)

    def __add__(self, other: "PaymentSplit") -> "PaymentSplit":
        return PaymentSplit(self.cash + other.cash, self.bank + other.bank, self.card + other.card)

    def to_record(self, *, remaining_credit: float) -> dict:
        return {
            "cash": self.cash,
            "bank": self.bank,
            "creditCard": self.card,
            "totalPaid": self.total,
            "remainingCredit": remaining_credit,
        }


@dataclass(frozen=True)
class SplitResult:
    target: float
    total_paid: float
    credit: float           # still outstanding, never negative
    is_overpaid: bool
    overpayment: Overpayment | None = None


def validate_split(target: float, split: PaymentSplit, *, middleman: bool = False) -> SplitResult:
    """
    credit      = max(0, target - paid)
    is_overpaid = paid > target   (advisory; the caller decides what to show)
    """
    paid = split.total
    overpaid = paid > target
    return SplitResult(
        target=target,
        total_paid=paid,
        credit=clamp_non_negative(target - paid),
        is_overpaid=overpaid,
        overpayment=Overpayment(paid, target, middleman=middleman) if overpaid else None,
    )


class MiddlemanDirection(str, Enum):
    GIVE = "give"
    RECEIVE = "receive"

    @classmethod
    def parse(cls, value) -> "MiddlemanDirection":
        if isinstance(value, cls):
            return value
        return cls.RECEIVE if str(value or "").strip().lower() == "receive" else cls.GIVE

    @property
    def sign(self) -> int:
        # give = money leaves the business, receive = money comes in
        return -1 if self is MiddlemanDirection.GIVE else 1


def final_amounts(
    main: PaymentSplit,
    middleman: PaymentSplit | None = None,
    direction: MiddlemanDirection = MiddlemanDirection.GIVE,
) -> PaymentSplit:
    """
    Cash / bank / card actually retained by the business from this sale.
    The middleman split is subtracted for "give" and added for "receive";
    an all-zero (or absent) middleman split leaves the main split as is.
    """
    if middleman is None or middleman.is_zero:
        return main
    return main + middleman.scaled(MiddlemanDirection.parse(direction).sign)
