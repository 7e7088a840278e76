"""
modules/sales/controller.py

Non-visual controller of the sales screen. Owns the cart, the raw form
inputs, the order-number and scanner listeners and the background jobs,
and reports everything through Qt signals so any view can bind to it.

All slots run on the UI thread; workers only talk back through signals.
"""
from __future__ import annotations

import logging
import traceback
from typing import Optional

from PySide6.QtCore import QObject, QThreadPool, Signal, Slot

from ...database.document_store import DocumentStore, StoreError
from ...database.repositories.entities_repo import EntitiesRepo, Entity, EntityRole
from ...database.repositories.inventory_repo import InventoryRepo
from ...utils.loggers import get_logger
from .barcode import BarcodeScanner, ScanResult, admit
from .cart import Cart, PhoneItem, ServiceItem
from .errors import SalesError
from .form import SaleFormState
from .jobs import fmt_err, start_job
from .model import CartTableModel
from .order_numbers import OrderNumberAllocator
from .payments import MiddlemanDirection
from .pricing import AdjustmentDirection
from .settlement import SettlementJob, SettlementRequest, SettlementService


class SalesController(QObject):
    totalsChanged = Signal(object)          # Totals
    cartChanged = Signal()
    orderNumberChanged = Signal(str)
    overpaymentDetected = Signal(str)       # advisory message; empty when cleared
    adjustmentClamped = Signal(str)         # the re-rendered adjustment text
    scanFinished = Signal(object)           # ScanResult
    entitiesLoaded = Signal(object, bool)   # list[Entity], had_error
    validationFailed = Signal(str)
    settlementStarted = Signal()
    settlementSucceeded = Signal(str)       # sale id
    settlementFailed = Signal(str)
    quickAddSucceeded = Signal(int)         # phones written
    quickAddFailed = Signal(str)

    _entitiesFetched = Signal(object, bool)

    def __init__(
        self,
        store: DocumentStore,
        parent: QObject | None = None,
        pool: QThreadPool | None = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(parent)
        self.store = store
        self._pool = pool
        self._log = logger or get_logger(__name__)

        self.cart = Cart()
        self.form = SaleFormState()
        self.entities: list[Entity] = []
        self.entity_error = False
        self.model = CartTableModel(self.cart)
        self._pending = False

        self.allocator = OrderNumberAllocator(store, self)
        self.allocator.orderNumberChanged.connect(self.orderNumberChanged)

        self.scanner = BarcodeScanner(store, self, pool=pool)
        self.scanner.scanResolved.connect(self._on_scan_resolved)

        self._settlement = SettlementJob(SettlementService(store, self._log), self, pool=pool)
        self._settlement.succeeded.connect(self._on_settled)
        self._settlement.failed.connect(self._on_settle_failed)

        self._entitiesFetched.connect(self._on_entities_fetched)

    # ---- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        self.allocator.start()
        self.scanner.start()
        self.fetch_entities()

    def teardown(self) -> None:
        self.allocator.stop()
        self.scanner.stop()

    @property
    def is_pending(self) -> bool:
        return self._pending

    # ---- entities -----------------------------------------------------------

    def fetch_entities(self) -> None:
        repo = EntitiesRepo(self.store)

        def work():
            entities, had_error = repo.list_all()
            self._entitiesFetched.emit(entities, had_error)

        start_job(work, self._pool)

    @Slot(object, bool)
    def _on_entities_fetched(self, entities: list, had_error: bool) -> None:
        self.entities = entities
        self.entity_error = had_error
        self.entitiesLoaded.emit(entities, had_error)

    def entities_for(self, role: EntityRole) -> list[Entity]:
        return [e for e in self.entities if e.role is role]

    # ---- cart ---------------------------------------------------------------

    def add_product(self, item: PhoneItem) -> None:
        self.cart.add_product(item)
        self._cart_changed()

    def replace_product(self, item_id: str, item: PhoneItem) -> None:
        if self.cart.replace_product(item_id, item):
            self._cart_changed()

    def remove_product(self, item_id: str) -> None:
        if self.cart.remove_product(item_id):
            self._cart_changed()

    def add_service(self, item: ServiceItem) -> None:
        self.cart.add_service(item)
        self._cart_changed()

    def replace_service(self, item_id: str, item: ServiceItem) -> None:
        if self.cart.replace_service(item_id, item):
            self._cart_changed()

    def remove_service(self, item_id: str) -> None:
        if self.cart.remove_service(item_id):
            self._cart_changed()

    def _cart_changed(self) -> None:
        self.model.refresh()
        self.cartChanged.emit()
        self.recompute()

    @Slot(object)
    def _on_scan_resolved(self, result: ScanResult) -> None:
        result = admit(self.cart, result)
        if result.ok:
            self._cart_changed()
        elif result.message:
            self._log.info("Scan %s: %s", result.outcome.value, result.message)
        self.scanFinished.emit(result)

    # ---- quick add ----------------------------------------------------------

    def quick_add(self, item: PhoneItem) -> None:
        """Save `item` straight to inventory, one phone per IMEI. The cart is left alone."""
        repo = InventoryRepo(self.store)

        def work():
            try:
                refs = repo.add_phones(item)
            except StoreError as e:
                self._log.debug("Quick add failed:\n%s", traceback.format_exc())
                self.quickAddFailed.emit(fmt_err("Could not add the product to inventory.", e))
                return
            self.quickAddSucceeded.emit(len(refs))

        start_job(work, self._pool)

    # ---- form inputs --------------------------------------------------------

    def set_customer(self, entity: Entity | None) -> None:
        self.form.customer = entity

    def set_taxes(self, gst: str, pst: str) -> None:
        self.form.gst_text = gst
        self.form.pst_text = pst
        self.recompute()

    def set_adjustment(self, text: str, direction=AdjustmentDirection.DISCOUNT) -> None:
        self.form.adjustment_text = text
        self.form.adjustment_direction = AdjustmentDirection.parse(direction)
        self.recompute()

    def set_payment(self, cash: str = "", bank: str = "", card: str = "") -> None:
        self.form.cash_text, self.form.bank_text, self.form.card_text = cash, bank, card
        self.recompute()

    def set_middleman(
        self,
        enabled: bool,
        entity: Entity | None = None,
        amount: str = "",
        cash: str = "",
        bank: str = "",
        card: str = "",
        direction=MiddlemanDirection.GIVE,
    ) -> None:
        f = self.form
        f.middleman_enabled = enabled
        f.middleman = entity
        f.middleman_amount_text = amount
        f.middleman_cash_text, f.middleman_bank_text, f.middleman_card_text = cash, bank, card
        f.middleman_direction = MiddlemanDirection.parse(direction)
        self.recompute()

    def set_order_number(self, text: str) -> None:
        self.allocator.set_user_value(text)

    def reset_order_number(self) -> None:
        self.allocator.reset_to_auto()

    def set_notes(self, text: str) -> None:
        self.form.notes_text = text

    def recompute(self) -> None:
        # re-cap after any cart or tax change
        if self.form.clamp_adjustment(self.cart):
            self.adjustmentClamped.emit(self.form.adjustment_text)
        totals = self.form.totals(self.cart)
        self.totalsChanged.emit(totals)

        main = self.form.main_validation(self.cart)
        if main.overpayment is not None:
            self.overpaymentDetected.emit(main.overpayment.message)
            return
        if self.form.middleman_enabled:
            mm = self.form.middleman_validation()
            if mm.overpayment is not None:
                self.overpaymentDetected.emit(mm.overpayment.message)
                return
        self.overpaymentDetected.emit("")

    # ---- settlement ---------------------------------------------------------

    def confirm(self) -> bool:
        """Start settlement. Returns False when nothing was started."""
        if self._pending:
            return False
        try:
            request = SettlementRequest.from_form(
                self.form,
                self.cart,
                order_number=self.allocator.value,
                is_custom_order_number=self.allocator.is_custom,
            )
        except SalesError as e:
            self.validationFailed.emit(str(e))
            return False

        self._pending = True
        self.settlementStarted.emit()
        self._settlement.run(request)
        return True

    @Slot(str)
    def _on_settled(self, sale_id: str) -> None:
        self._pending = False
        self.cart.clear()
        self.form.clear_payments()
        self._cart_changed()
        self.settlementSucceeded.emit(sale_id)

    @Slot(str)
    def _on_settle_failed(self, message: str) -> None:
        self._pending = False
        self._log.error("Settlement failed: %s", message)
        self.settlementFailed.emit(message)
