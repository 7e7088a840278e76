"""
modules/sales/barcode.py

Scanner -> cart data flow.

A handheld scanner writes the scanned code into Data/scanner.barcode. The
scanner listener clears that field right away (its own write) and resolves
the code on a pool thread:

    IMEI index  --phoneReference-->  phone document
        brand / model / color / carrier references and the storage
        location are resolved one by one; a failed lookup only turns that
        field into "Unknown".

A missing IMEI entry or phone document is reported to the user; the
duplicate check against the cart happens on the UI thread in `admit()`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from PySide6.QtCore import QObject, QThreadPool, Signal, Slot

from ...constants import COL_DATA, DOC_SCANNER, UNKNOWN_FIELD
from ...database.document_store import (
    DELETE_FIELD,
    DocumentRef,
    DocumentSnapshot,
    DocumentStore,
    ListenerRegistration,
    StoreError,
)
from ...database.repositories.inventory_repo import InventoryRepo
from ...utils.validators import float_or_zero, try_parse_float
from .cart import Cart, PhoneItem
from .jobs import start_job

_log = logging.getLogger(__name__)

PRICE_FIELDS = ("sellingPrice", "price", "unitPrice")
COST_FIELDS = ("unitCost", "cost")


class ScanOutcome(str, Enum):
    RESOLVED = "resolved"            # looked up, not yet admitted to the cart
    ADDED = "added"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    PHONE_MISSING = "phone_missing"
    ERROR = "error"


@dataclass(frozen=True)
class ScanResult:
    outcome: ScanOutcome
    imei: str
    item: Optional[PhoneItem] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome in (ScanOutcome.RESOLVED, ScanOutcome.ADDED)


def lookup_or_default(
    store: DocumentStore,
    ref: Any,
    field_names: Sequence[str],
    fallback: str = UNKNOWN_FIELD,
) -> str:
    """
    Follow `ref` and return the first non-empty field among `field_names`.
    Any failure (not a reference, missing document, store error, no such
    field) yields `fallback`; this never raises.
    """
    if not isinstance(ref, DocumentRef):
        return fallback
    try:
        snap = store.get(ref)
    except StoreError as e:
        _log.warning("Lookup of %s failed: %s", ref.path, e)
        return fallback
    if not snap.exists:
        return fallback
    for name in field_names:
        val = snap.get(name)
        if val not in (None, ""):
            return str(val)
    return fallback


def _first_present(data: dict, names: Sequence[str]):
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


class BarcodeResolver:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.inventory = InventoryRepo(store)

    def resolve(self, code: str) -> ScanResult:
        imei = str(code or "").strip()

        try:
            entry = self.inventory.find_imei_entry(imei)
        except StoreError as e:
            return ScanResult(ScanOutcome.ERROR, imei, message=str(e))
        if entry is None:
            return ScanResult(ScanOutcome.NOT_FOUND, imei, message=f"IMEI {imei} not found in inventory.")

        phone_ref = entry.get("phoneReference")
        if not isinstance(phone_ref, DocumentRef):
            return ScanResult(
                ScanOutcome.PHONE_MISSING, imei, message=f"IMEI {imei} has no phone reference."
            )
        try:
            phone = self.store.get(phone_ref)
        except StoreError as e:
            return ScanResult(ScanOutcome.PHONE_MISSING, imei, message=f"Could not load phone for IMEI {imei}: {e}")
        if not phone.exists:
            return ScanResult(
                ScanOutcome.PHONE_MISSING, imei, message=f"Phone for IMEI {imei} no longer exists."
            )

        return ScanResult(ScanOutcome.RESOLVED, imei, item=self._build_item(imei, phone))

    def _build_item(self, imei: str, phone: DocumentSnapshot) -> PhoneItem:
        data = phone.data or {}

        storage = data.get("storageLocation")
        if isinstance(storage, DocumentRef):
            storage_location = lookup_or_default(self.store, storage, ("storageLocation", "name"))
        else:
            storage_location = str(storage) if storage else UNKNOWN_FIELD

        ok, cost = try_parse_float(_first_present(data, COST_FIELDS))

        return PhoneItem(
            brand=lookup_or_default(self.store, data.get("brand"), ("brand", "name")),
            model=lookup_or_default(self.store, data.get("model"), ("model", "name")),
            capacity=str(data.get("capacity") or ""),
            capacity_unit=str(data.get("capacityUnit") or ""),
            color=lookup_or_default(self.store, data.get("color"), ("name", "color")),
            carrier=lookup_or_default(self.store, data.get("carrier"), ("name", "carrier")),
            status=str(data.get("status") or ""),
            storage_location=storage_location,
            imeis=(imei,),
            unit_price=float_or_zero(_first_present(data, PRICE_FIELDS)),
            unit_cost=cost if ok else None,
        )


def admit(cart: Cart, result: ScanResult) -> ScanResult:
    """Add a resolved scan to the cart unless its IMEI is already there."""
    if result.outcome is not ScanOutcome.RESOLVED or result.item is None:
        return result
    if cart.contains_imei(result.imei):
        return ScanResult(
            ScanOutcome.DUPLICATE, result.imei, item=result.item,
            message=f"IMEI {result.imei} is already in the cart.",
        )
    cart.add_product(result.item)
    return ScanResult(ScanOutcome.ADDED, result.imei, item=result.item)


class BarcodeScanner(QObject):
    """
    Listens to Data/scanner and emits `scanResolved(ScanResult)` on the UI
    thread for every scanned code. Each scan is independent.
    """

    scanResolved = Signal(object)

    _snapshotReceived = Signal(object, object)
    _resolved = Signal(object)

    def __init__(self, store: DocumentStore, parent: QObject | None = None, pool: QThreadPool | None = None):
        super().__init__(parent)
        self.store = store
        self.resolver = BarcodeResolver(store)
        self._pool = pool
        self._registration: ListenerRegistration | None = None
        self._snapshotReceived.connect(self._on_scanner_doc)
        self._resolved.connect(self._deliver)

    @property
    def scanner_ref(self) -> DocumentRef:
        return self.store.collection(COL_DATA).document(DOC_SCANNER)

    def start(self) -> None:
        if self._registration is not None:
            return
        self._registration = self.store.on_snapshot(self.scanner_ref, self._snapshotReceived.emit)

    def stop(self) -> None:
        if self._registration is not None:
            self._registration.remove()
            self._registration = None

    @Slot(object, object)
    def _on_scanner_doc(self, snap, error) -> None:
        if error is not None:
            _log.error("Error fetching barcode document: %s", error)
            return
        if snap is None or not snap.exists:
            return
        code = snap.get("barcode")
        if not isinstance(code, str) or not code.strip():
            return
        ref = snap.reference
        start_job(lambda: self._clear_pending(ref), self._pool)
        self.resolve_async(code)

    def _clear_pending(self, ref: DocumentRef) -> None:
        try:
            self.store.update(ref, {"barcode": DELETE_FIELD})
        except StoreError as e:
            _log.error("Error deleting barcode from database: %s", e)

    def resolve_async(self, code: str) -> None:
        start_job(lambda: self._resolve_in_worker(code), self._pool)

    def _resolve_in_worker(self, code: str) -> None:
        try:
            result = self.resolver.resolve(code)
        except Exception as e:
            _log.exception("Barcode resolution failed for %s", code)
            result = ScanResult(ScanOutcome.ERROR, str(code).strip(), message=str(e))
        self._resolved.emit(result)

    @Slot(object)
    def _deliver(self, result: ScanResult) -> None:
        self.scanResolved.emit(result)
