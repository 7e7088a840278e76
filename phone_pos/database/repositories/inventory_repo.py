from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...constants import (
    COL_BRANDS,
    COL_MODELS,
    COL_PHONES,
    COL_IMEI,
    COL_COLORS,
    COL_CARRIERS,
    COL_STORAGE_LOCATIONS,
)
from ...utils.helpers import utc_now
from ..document_store import DocumentRef, DocumentSnapshot, DocumentStore, Transaction

if TYPE_CHECKING:
    from ...modules.sales.cart import PhoneItem

_log = logging.getLogger(__name__)


class InventoryRepo:
    """
    Phone inventory lives in a hierarchy:

        PhoneBrands/{brand}/Models/{model}/Phones/{phone}

    with a flat IMEI index (IMEI/{id} -> {imei, phoneReference}) used by the
    scanner. Lookup collections (Colors, Carriers, StorageLocations) hold the
    display names referenced from phone documents.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def _first(self, query) -> DocumentSnapshot | None:
        snaps = self.store.query(query.limit(1))
        return snaps[0] if snaps else None

    # ---- lookups ------------------------------------------------------------

    def find_brand(self, brand: str) -> DocumentSnapshot | None:
        return self._first(self.store.collection(COL_BRANDS).where("brand", brand))

    def find_model(self, brand_ref: DocumentRef, model: str) -> DocumentSnapshot | None:
        return self._first(brand_ref.collection(COL_MODELS).where("model", model))

    def find_phone(self, model_ref: DocumentRef, imei: str) -> DocumentSnapshot | None:
        return self._first(model_ref.collection(COL_PHONES).where("imei", imei))

    def find_imei_entries(self, imei: str) -> list[DocumentSnapshot]:
        return self.store.query(self.store.collection(COL_IMEI).where("imei", imei))

    def find_imei_entry(self, imei: str) -> DocumentSnapshot | None:
        return self._first(self.store.collection(COL_IMEI).where("imei", imei))

    def find_named(self, collection: str, field_name: str, value: str) -> DocumentSnapshot | None:
        return self._first(self.store.collection(collection).where(field_name, value))

    # ---- quick add ----------------------------------------------------------

    def add_phones(self, item: "PhoneItem") -> list[DocumentRef]:
        """
        Put one phone document per IMEI of `item` into inventory, plus its
        IMEI index entry. Brand/model/color/carrier/location documents are
        looked up first and created in the same commit when missing.

        Returns the created phone references.
        """
        now = utc_now()
        pending: list[tuple[DocumentRef, dict]] = []

        def find_or_plan(existing: DocumentSnapshot | None, ref: DocumentRef, data: dict) -> DocumentRef:
            if existing is not None:
                return existing.reference
            pending.append((ref, data))
            return ref

        brand_ref = find_or_plan(
            self.find_brand(item.brand),
            self.store.collection(COL_BRANDS).document(),
            {"brand": item.brand, "createdAt": now},
        )
        model_ref = find_or_plan(
            # a brand planned above has no models yet
            self.find_model(brand_ref, item.model) if not pending else None,
            brand_ref.collection(COL_MODELS).document(),
            {"model": item.model, "brand": item.brand, "createdAt": now},
        )

        optional_refs: dict[str, DocumentRef] = {}
        for key, collection, field_name, value in (
            ("storageLocation", COL_STORAGE_LOCATIONS, "storageLocation", item.storage_location),
            ("carrier", COL_CARRIERS, "name", item.carrier),
            ("color", COL_COLORS, "name", item.color),
        ):
            if not value:
                continue
            optional_refs[key] = find_or_plan(
                self.find_named(collection, field_name, value),
                self.store.collection(collection).document(),
                {field_name: value, "createdAt": now},
            )

        phone_refs: list[DocumentRef] = []
        for imei in item.imeis:
            phone_ref = model_ref.collection(COL_PHONES).document()
            phone = {
                "brand": brand_ref,
                "model": model_ref,
                "capacity": item.capacity,
                "capacityUnit": item.capacity_unit,
                "imei": imei,
                "unitCost": item.unit_cost,
                "sellingPrice": item.unit_price,
                "status": item.status,
                "createdAt": now,
                **optional_refs,
            }
            pending.append((phone_ref, phone))
            pending.append((
                self.store.collection(COL_IMEI).document(),
                {"imei": imei, "phoneReference": phone_ref, "createdAt": now},
            ))
            phone_refs.append(phone_ref)

        def write(txn: Transaction) -> None:
            for ref, data in pending:
                txn.set(ref, data)

        self.store.run_transaction(write)
        _log.info("Added %d phone(s) of %s %s to inventory", len(phone_refs), item.brand, item.model)
        return phone_refs
