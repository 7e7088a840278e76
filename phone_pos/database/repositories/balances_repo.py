from __future__ import annotations

from ...constants import COL_BALANCES, BALANCE_ACCOUNTS
from ...utils.validators import try_parse_float
from ..document_store import DocumentRef, DocumentSnapshot, DocumentStore


class BalancesRepo:
    """
    The three singleton money accounts: Balances/cash, Balances/bank,
    Balances/creditCard, each {amount, updatedAt}.
    """

    ACCOUNTS = BALANCE_ACCOUNTS

    def __init__(self, store: DocumentStore):
        self.store = store

    def ref(self, account: str) -> DocumentRef:
        if account not in self.ACCOUNTS:
            raise ValueError(f"Unknown balance account: {account}")
        return self.store.collection(COL_BALANCES).document(account)

    def get(self, account: str) -> DocumentSnapshot:
        return self.store.get(self.ref(account))

    @staticmethod
    def amount_of(snap: DocumentSnapshot) -> float:
        ok, val = try_parse_float(snap.get("amount"))
        return val if ok else 0.0

    def amounts(self) -> dict[str, float | None]:
        """Current amount per account; None where the document is missing."""
        out: dict[str, float | None] = {}
        for account in self.ACCOUNTS:
            snap = self.get(account)
            out[account] = self.amount_of(snap) if snap.exists else None
        return out
