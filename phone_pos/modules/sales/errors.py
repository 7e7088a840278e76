"""
Errors raised by the sales screen core.

Controllers surface `str(err)` directly to the user, so messages are
written as user-facing copy.
"""
from __future__ import annotations

from dataclasses import dataclass

from ...database.document_store import StoreError
from ...utils.helpers import fmt_dollars


class SalesError(Exception):
    pass


class NotFoundError(SalesError):
    """A document settlement needs is missing. Aborts before any write."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ValidationRequiredError(SalesError):
    """Required inputs are missing. Lists every missing field at once."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__("Please fill in the following: " + ", ".join(self.missing))


class StoreOperationFailedError(SalesError):
    """The store rejected a read or the atomic commit."""

    def __init__(self, cause: StoreError):
        self.cause = cause
        super().__init__(str(cause))


@dataclass(frozen=True)
class Overpayment:
    """Advisory only; settlement still goes ahead with the entered amounts."""

    total_paid: float
    target: float
    middleman: bool = False

    @property
    def message(self) -> str:
        if self.middleman:
            return (
                f"Total middleman payment amount ({fmt_dollars(self.total_paid)}) exceeds "
                f"the middleman amount ({fmt_dollars(self.target)}). Please reduce the payment amounts."
            )
        return (
            f"Total payment amount ({fmt_dollars(self.total_paid)}) exceeds "
            f"the grand total ({fmt_dollars(self.target)}). Please reduce the payment amounts."
        )
