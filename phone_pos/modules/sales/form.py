"""
modules/sales/form.py

Raw inputs of the sales screen, kept exactly as typed. Everything numeric is
parsed on demand (pricing / payments treat bad text as 0); the only hard
gate before settlement is `missing_fields()`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...database.repositories.entities_repo import Entity
from ...utils.validators import float_or_zero, non_empty
from .cart import Cart
from .payments import MiddlemanDirection, PaymentSplit, SplitResult, validate_split
from .pricing import AdjustmentDirection, Totals, clamp_adjustment, compute_totals


@dataclass
class SaleFormState:
    customer: Optional[Entity] = None

    gst_text: str = ""
    pst_text: str = ""
    adjustment_text: str = ""
    adjustment_direction: AdjustmentDirection = AdjustmentDirection.DISCOUNT

    cash_text: str = ""
    bank_text: str = ""
    card_text: str = ""

    middleman_enabled: bool = False
    middleman: Optional[Entity] = None
    middleman_amount_text: str = ""
    middleman_cash_text: str = ""
    middleman_bank_text: str = ""
    middleman_card_text: str = ""
    middleman_direction: MiddlemanDirection = MiddlemanDirection.GIVE

    notes_text: str = ""

    # ---- derived ----

    def totals(self, cart: Cart) -> Totals:
        return compute_totals(
            [p.unit_price for p in cart.products],
            [s.price for s in cart.services],
            self.gst_text,
            self.pst_text,
            self.adjustment_text,
            self.adjustment_direction,
        )

    def clamp_adjustment(self, cart: Cart) -> bool:
        """Cap the adjustment at subtotal + taxes. Returns True when the text changed."""
        t = self.totals(cart)
        clamped = clamp_adjustment(
            self.adjustment_text,
            subtotal=t.subtotal,
            gst_amount=t.gst_amount,
            pst_amount=t.pst_amount,
        )
        if clamped == self.adjustment_text:
            return False
        self.adjustment_text = clamped
        return True

    @property
    def main_split(self) -> PaymentSplit:
        return PaymentSplit.from_text(self.cash_text, self.bank_text, self.card_text)

    @property
    def middleman_split(self) -> PaymentSplit:
        return PaymentSplit.from_text(
            self.middleman_cash_text, self.middleman_bank_text, self.middleman_card_text
        )

    @property
    def middleman_amount(self) -> float:
        return float_or_zero(self.middleman_amount_text)

    def main_validation(self, cart: Cart) -> SplitResult:
        return validate_split(self.totals(cart).grand_total, self.main_split)

    def middleman_validation(self) -> SplitResult:
        return validate_split(self.middleman_amount, self.middleman_split, middleman=True)

    # ---- gate ----

    def missing_fields(self, cart: Cart) -> list[str]:
        missing: list[str] = []
        if self.customer is None:
            missing.append("Customer")
        if not non_empty(self.gst_text):
            missing.append("GST")
        if not non_empty(self.pst_text):
            missing.append("PST")
        if self.middleman_enabled:
            if self.middleman is None:
                missing.append("Middleman")
            if not non_empty(self.middleman_amount_text):
                missing.append("Middleman amount")
        if cart.is_empty:
            missing.append("At least one product or service")
        return missing

    def clear_payments(self) -> None:
        self.cash_text = self.bank_text = self.card_text = ""
        self.middleman_amount_text = ""
        self.middleman_cash_text = self.middleman_bank_text = self.middleman_card_text = ""
        self.notes_text = ""
