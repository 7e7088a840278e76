from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ...constants import COL_CUSTOMERS, COL_SUPPLIERS, COL_MIDDLEMEN
from ...utils.validators import try_parse_float
from ..document_store import DocumentSnapshot, DocumentStore, StoreError

_log = logging.getLogger(__name__)

# first present wins
BALANCE_FIELDS = ("balance", "Balance", "accountBalance", "AccountBalance")


class EntityRole(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    MIDDLEMAN = "middleman"

    @property
    def collection_name(self) -> str:
        return {
            EntityRole.CUSTOMER: COL_CUSTOMERS,
            EntityRole.SUPPLIER: COL_SUPPLIERS,
            EntityRole.MIDDLEMAN: COL_MIDDLEMEN,
        }[self]

    @property
    def sort_rank(self) -> int:
        # middlemen first in pickers, then customers, then suppliers
        return {
            EntityRole.MIDDLEMAN: 0,
            EntityRole.CUSTOMER: 1,
            EntityRole.SUPPLIER: 2,
        }[self]


@dataclass(frozen=True)
class Entity:
    entity_id: str
    name: str
    role: EntityRole
    balance: float | None = None   # None = unknown, not zero


def balance_field(data: dict | None) -> str | None:
    """Name of the first balance field present in `data`, or None."""
    if not data:
        return None
    for name in BALANCE_FIELDS:
        if data.get(name) is not None:
            return name
    return None


def parse_balance(data: dict | None) -> float | None:
    """
    Read the entity balance through the fallback chain.
    Numbers and numeric strings are accepted; anything else is "unknown" (None).
    """
    name = balance_field(data)
    if name is None:
        return None
    ok, val = try_parse_float(data[name])
    return val if ok else None


def balance_or_zero(data: dict | None) -> float:
    bal = parse_balance(data)
    return bal if bal is not None else 0.0


class EntitiesRepo:
    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _to_entity(snap: DocumentSnapshot, role: EntityRole) -> Entity:
        return Entity(
            entity_id=snap.id,
            name=str(snap.get("name") or ""),
            role=role,
            balance=parse_balance(snap.data),
        )

    # ---- Queries ----------------------------------------------------------

    def list_role(self, role: EntityRole) -> list[Entity]:
        snaps = self.store.query(self.store.collection(role.collection_name))
        return [self._to_entity(s, role) for s in snaps]

    def list_all(self) -> tuple[list[Entity], bool]:
        """
        Fetch customers, suppliers and middlemen.

        Returns (entities, had_error). A failing collection is logged and
        skipped; whatever loaded is still returned, sorted by role rank and
        then case-insensitive name.
        """
        entities: list[Entity] = []
        had_error = False
        for role in (EntityRole.CUSTOMER, EntityRole.SUPPLIER, EntityRole.MIDDLEMAN):
            try:
                entities.extend(self.list_role(role))
            except StoreError as e:
                _log.error("Error fetching %s: %s", role.collection_name, e)
                had_error = True
        entities.sort(key=lambda e: (e.role.sort_rank, e.name.casefold()))
        return entities, had_error

    def find_by_name(self, role: EntityRole, name: str) -> DocumentSnapshot | None:
        """Exact name match inside the collection implied by `role`."""
        q = self.store.collection(role.collection_name).where("name", name).limit(1)
        snaps = self.store.query(q)
        return snaps[0] if snaps else None
