from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Iterable


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PhoneItem:
    brand: str
    model: str
    capacity: str = ""
    capacity_unit: str = ""
    color: str = ""
    carrier: str = ""
    status: str = ""
    storage_location: str = ""
    imeis: tuple[str, ...] = ()
    unit_price: float = 0.0          # selling price
    unit_cost: float | None = None   # original cost, when known
    item_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        object.__setattr__(self, "imeis", tuple(self.imeis))

    def to_sale_line(self) -> dict:
        """Sale-record shape of a single-IMEI item."""
        line = {
            "brand": self.brand,
            "model": self.model,
            "capacity": self.capacity,
            "capacityUnit": self.capacity_unit,
            "color": self.color,
            "carrier": self.carrier,
            "status": self.status,
            "storageLocation": self.storage_location,
            "imei": self.imeis[0] if self.imeis else "",
            "sellingPrice": self.unit_price,
        }
        if self.unit_cost is not None:
            line["originalCost"] = self.unit_cost
        return line


@dataclass(frozen=True)
class ServiceItem:
    name: str
    price: float = 0.0
    item_id: str = field(default_factory=_new_id)

    def to_sale_line(self) -> dict:
        return {"name": self.name, "price": self.price}


def expand_items(items: Iterable[PhoneItem]) -> list[PhoneItem]:
    """
    One line item per IMEI. Each copy keeps the full price and cost of the
    source. Items without IMEIs and single-IMEI items pass through unchanged.
    """
    out: list[PhoneItem] = []
    for item in items:
        if len(item.imeis) <= 1:
            out.append(item)
            continue
        for imei in item.imeis:
            out.append(replace(item, imeis=(imei,), item_id=_new_id()))
    return out


class Cart:
    """Products and services of the open sale. Products are always stored expanded."""

    def __init__(self):
        self.products: list[PhoneItem] = []
        self.services: list[ServiceItem] = []

    # ---- products ----

    def add_product(self, item: PhoneItem) -> list[PhoneItem]:
        added = expand_items([item])
        self.products.extend(added)
        return added

    def replace_product(self, item_id: str, updated: PhoneItem) -> bool:
        """Edit = remove the old item, append the (re-expanded) replacement."""
        if not self.remove_product(item_id):
            return False
        self.products.extend(expand_items([updated]))
        return True

    def remove_product(self, item_id: str) -> bool:
        for i, p in enumerate(self.products):
            if p.item_id == item_id:
                del self.products[i]
                return True
        return False

    def contains_imei(self, imei: str) -> bool:
        return any(imei in p.imeis for p in self.products)

    # ---- services ----

    def add_service(self, item: ServiceItem) -> None:
        self.services.append(item)

    def replace_service(self, item_id: str, updated: ServiceItem) -> bool:
        for i, s in enumerate(self.services):
            if s.item_id == item_id:
                self.services[i] = updated
                return True
        return False

    def remove_service(self, item_id: str) -> bool:
        for i, s in enumerate(self.services):
            if s.item_id == item_id:
                del self.services[i]
                return True
        return False

    # ---- whole cart ----

    @property
    def is_empty(self) -> bool:
        return not self.products and not self.services

    def clear(self) -> None:
        self.products.clear()
        self.services.clear()
