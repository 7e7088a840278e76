"""
modules/sales/settlement.py

Turns a confirmed cart into one atomic write group.

The store's transaction forbids queries once a write is queued and may
re-run its callback on contention, so settlement is split in two:

  plan()        Phase 1. Read-only discovery outside the transaction:
                brand -> model -> phone per item, IMEI index entries,
                counterparty documents, balance documents. Produces a
                SettlementPlan holding only document identities and
                absolute target values.

  apply_plan()  Phase 2. Issues blind writes from the plan, in this order:
                deletes, sale, order allocation, customer, middleman,
                balance accounts. Nothing is read, so re-running it on
                contention writes the same values again.

Any NotFound in phase 1 aborts before a single write; a failure in phase 2
rolls the whole group back.
"""
from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from PySide6.QtCore import QObject, QThreadPool, Signal

from ...constants import COL_BALANCES, COL_ORDER_NUMBERS, COL_SALES
from ...database.document_store import (
    ArrayUnion,
    DocumentRef,
    DocumentStore,
    StoreError,
    Transaction,
)
from ...database.repositories.balances_repo import BalancesRepo
from ...database.repositories.entities_repo import (
    EntitiesRepo,
    Entity,
    EntityRole,
    balance_field,
    balance_or_zero,
)
from ...database.repositories.inventory_repo import InventoryRepo
from ...utils.helpers import utc_now
from .cart import Cart, PhoneItem, ServiceItem, expand_items
from .errors import NotFoundError, SalesError, StoreOperationFailedError, ValidationRequiredError
from .form import SaleFormState
from .jobs import fmt_err, start_job
from .order_numbers import parse_order_number
from .payments import MiddlemanDirection, PaymentSplit, final_amounts, validate_split
from .pricing import Totals

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MiddlemanPayment:
    entity: Entity
    amount: float
    split: PaymentSplit
    direction: MiddlemanDirection = MiddlemanDirection.GIVE


@dataclass(frozen=True)
class SettlementRequest:
    customer: Entity
    products: tuple[PhoneItem, ...]
    services: tuple[ServiceItem, ...]
    totals: Totals
    payment: PaymentSplit
    order_number: str
    is_custom_order_number: bool = False
    middleman: Optional[MiddlemanPayment] = None
    transaction_date: Optional[datetime] = None
    notes: str = ""

    @classmethod
    def from_form(
        cls,
        form: SaleFormState,
        cart: Cart,
        *,
        order_number: str,
        is_custom_order_number: bool = False,
    ) -> "SettlementRequest":
        """Snapshot the screen state. Raises ValidationRequiredError listing every gap."""
        missing = form.missing_fields(cart)
        if missing:
            raise ValidationRequiredError(missing)

        middleman = None
        if form.middleman_enabled:
            middleman = MiddlemanPayment(
                entity=form.middleman,
                amount=form.middleman_amount,
                split=form.middleman_split,
                direction=form.middleman_direction,
            )
        return cls(
            customer=form.customer,
            products=tuple(cart.products),
            services=tuple(cart.services),
            totals=form.totals(cart),
            payment=form.main_split,
            order_number=order_number,
            is_custom_order_number=is_custom_order_number,
            middleman=middleman,
            notes=form.notes_text.strip(),
        )


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntityUpdate:
    ref: DocumentRef
    balance_field: str
    new_balance: float
    history_entry: dict


@dataclass
class SettlementPlan:
    sale_ref: DocumentRef
    order_ref: DocumentRef
    phone_refs: list[DocumentRef] = field(default_factory=list)
    imei_refs: list[DocumentRef] = field(default_factory=list)
    sale_data: dict = field(default_factory=dict)
    order_data: dict = field(default_factory=dict)
    customer: Optional[EntityUpdate] = None
    middleman: Optional[EntityUpdate] = None
    accounts: dict[str, float] = field(default_factory=dict)   # account -> new absolute amount
    final_split: PaymentSplit = field(default_factory=PaymentSplit)
    stamp: Optional[datetime] = None

    @property
    def sale_id(self) -> str:
        return self.sale_ref.id

    @property
    def delete_refs(self) -> list[DocumentRef]:
        return self.phone_refs + self.imei_refs


def order_number_value(display: str, is_custom: bool = False):
    """
    Stored allocation number. Auto numbers keep their integer so the
    sequence can be recomputed; custom labels are stored as typed.
    """
    if is_custom:
        return display
    n = parse_order_number(display)
    return n if n is not None else display


class SettlementPlanner:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.inventory = InventoryRepo(store)
        self.entities = EntitiesRepo(store)
        self.balances = BalancesRepo(store)

    # ---- discovery ----------------------------------------------------------

    def _resolve_phone(self, item: PhoneItem) -> DocumentRef:
        if not item.imeis:
            raise NotFoundError("Phone", f"{item.brand} {item.model} (no IMEI)")
        imei = item.imeis[0]

        brand = self.inventory.find_brand(item.brand)
        if brand is None:
            raise NotFoundError("Brand", item.brand)
        model = self.inventory.find_model(brand.reference, item.model)
        if model is None:
            raise NotFoundError("Model", f"{item.brand} {item.model}")
        phone = self.inventory.find_phone(model.reference, imei)
        if phone is None:
            raise NotFoundError("Phone", imei)
        return phone.reference

    def _resolve_entity(self, entity: Entity, kind: str):
        snap = self.entities.find_by_name(entity.role, entity.name)
        if snap is None:
            raise NotFoundError(kind, entity.name)
        return snap

    def plan(self, request: SettlementRequest) -> SettlementPlan:
        """Phase 1. Read-only; raises NotFoundError or StoreError, never writes."""
        products = expand_items(request.products)

        phone_refs: list[DocumentRef] = []
        imei_refs: list[DocumentRef] = []
        seen: set[str] = set()
        for item in products:
            phone_ref = self._resolve_phone(item)
            if phone_ref.path in seen:
                continue
            seen.add(phone_ref.path)
            phone_refs.append(phone_ref)

            entries = self.inventory.find_imei_entries(item.imeis[0])
            if not entries:
                _log.warning("No IMEI index entry for %s; nothing to remove there", item.imeis[0])
            for entry in entries:
                if entry.reference.path not in seen:
                    seen.add(entry.reference.path)
                    imei_refs.append(entry.reference)

        customer_snap = self._resolve_entity(request.customer, "Customer")
        middleman_snap = None
        if request.middleman is not None:
            middleman_snap = self._resolve_entity(request.middleman.entity, "Middleman")

        sale_ref = self.store.collection(COL_SALES).document()
        order_ref = self.store.collection(COL_ORDER_NUMBERS).document()

        balances = self.balances.amounts()
        for account, amount in balances.items():
            if amount is None:
                raise NotFoundError("Balance account", account)

        return self._build(request, products, phone_refs, imei_refs,
                           customer_snap, middleman_snap, balances, sale_ref, order_ref)

    # ---- computation --------------------------------------------------------

    def _build(self, request, products, phone_refs, imei_refs,
               customer_snap, middleman_snap, balances, sale_ref, order_ref) -> SettlementPlan:
        now = utc_now()
        tx_date = request.transaction_date or now
        t = request.totals

        main = validate_split(t.grand_total, request.payment)

        mm = request.middleman
        mm_result = None
        if mm is not None:
            mm_result = validate_split(mm.amount, mm.split, middleman=True)
            final = final_amounts(request.payment, mm.split, mm.direction)
        else:
            final = request.payment

        sale = {
            "transactionDate": tx_date,
            "createdAt": now,
            "orderNumber": request.order_number,
            "isCustomOrderNumber": request.is_custom_order_number,
            "customerReference": customer_snap.reference,
            "customerName": request.customer.name,
            "customerType": request.customer.role.value,
            "productSubtotal": t.product_subtotal,
            "serviceSubtotal": t.service_subtotal,
            "subtotal": t.subtotal,
            "gstPercentage": t.gst_percent,
            "gstAmount": t.gst_amount,
            "pstPercentage": t.pst_percent,
            "pstAmount": t.pst_amount,
            "adjustmentAmount": t.adjustment,
            "adjustmentUnit": t.adjustment_direction.value,
            "adjustment": t.adjustment_signed,
            "grandTotal": t.grand_total,
            "items": [p.to_sale_line() for p in products],
            "services": [s.to_sale_line() for s in request.services],
            "paymentMethods": request.payment.to_record(remaining_credit=main.credit),
            "notes": request.notes,
        }
        if mm is not None:
            sale["middlemanPayment"] = {
                "middlemanReference": middleman_snap.reference,
                "middlemanName": mm.entity.name,
                "amount": mm.amount,
                "unit": mm.direction.value,
                "paymentSplit": mm.split.to_record(remaining_credit=mm_result.credit),
            }

        order = {
            "orderNumber": order_number_value(request.order_number, request.is_custom_order_number),
            "isCustom": request.is_custom_order_number,
            "salesReference": sale_ref,
            "createdAt": now,
            "transactionDate": tx_date,
        }

        # TODO: confirm with the shop whether an overpayment should reduce the
        # customer's balance instead of adding to it.
        customer_delta = abs(main.total_paid - t.grand_total)
        customer_update = EntityUpdate(
            ref=customer_snap.reference,
            balance_field=balance_field(customer_snap.data) or "balance",
            new_balance=balance_or_zero(customer_snap.data) + customer_delta,
            history_entry={"salesReference": sale_ref, "timestamp": now, "role": "customer"},
        )

        middleman_update = None
        if mm is not None:
            signed_credit = mm.direction.sign * mm_result.credit
            middleman_update = EntityUpdate(
                ref=middleman_snap.reference,
                balance_field=balance_field(middleman_snap.data) or "balance",
                new_balance=balance_or_zero(middleman_snap.data) + signed_credit,
                history_entry={"salesReference": sale_ref, "timestamp": now, "role": EntityRole.MIDDLEMAN.value},
            )

        finals = {"cash": final.cash, "bank": final.bank, "creditCard": final.card}
        accounts = {account: amount + finals[account] for account, amount in balances.items()}

        return SettlementPlan(
            sale_ref=sale_ref,
            order_ref=order_ref,
            phone_refs=phone_refs,
            imei_refs=imei_refs,
            sale_data=sale,
            order_data=order,
            customer=customer_update,
            middleman=middleman_update,
            accounts=accounts,
            final_split=final,
            stamp=now,
        )


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------

def _apply_entity(txn: Transaction, update: EntityUpdate) -> None:
    txn.update(update.ref, {
        "transactionHistory": ArrayUnion([update.history_entry]),
        update.balance_field: update.new_balance,
    })


def apply_plan(txn: Transaction, plan: SettlementPlan) -> str:
    """Phase 2. Blind writes only."""
    for ref in plan.delete_refs:
        txn.delete(ref)
    txn.set(plan.sale_ref, plan.sale_data)
    txn.set(plan.order_ref, plan.order_data)
    if plan.customer is not None:
        _apply_entity(txn, plan.customer)
    if plan.middleman is not None:
        _apply_entity(txn, plan.middleman)
    for account, amount in plan.accounts.items():
        txn.update(
            DocumentRef(f"{COL_BALANCES}/{account}"),
            {"amount": amount, "updatedAt": plan.stamp},
        )
    return plan.sale_id


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class SettlementService:
    def __init__(self, store: DocumentStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.planner = SettlementPlanner(store)
        self._log = logger or _log

    def settle(self, request: SettlementRequest) -> str:
        """
        Run both phases. Returns the new sale id.

        Raises NotFoundError (phase 1) or StoreOperationFailedError (any
        store failure); in both cases nothing has been written.
        """
        try:
            plan = self.planner.plan(request)
            sale_id = self.store.run_transaction(lambda txn: apply_plan(txn, plan))
        except StoreError as e:
            raise StoreOperationFailedError(e) from e
        self._log.info(
            "Sale %s settled: order %s, %d item(s), %d service(s), grand total %.2f",
            sale_id, request.order_number, len(plan.phone_refs),
            len(request.services), request.totals.grand_total,
        )
        return sale_id


class SettlementJob(QObject):
    """
    Runs SettlementService.settle() on the pool. Exactly one of
    `succeeded(sale_id)` / `failed(message)` is emitted per run().
    """

    succeeded = Signal(str)
    failed = Signal(str)

    def __init__(
        self,
        service: SettlementService,
        parent: QObject | None = None,
        pool: QThreadPool | None = None,
    ):
        super().__init__(parent)
        self.service = service
        self._pool = pool

    def run(self, request: SettlementRequest) -> None:
        start_job(lambda: self._run(request), self._pool)

    def _run(self, request: SettlementRequest) -> None:
        try:
            sale_id = self.service.settle(request)
        except SalesError as e:
            _log.debug("Settlement failed:\n%s", traceback.format_exc())
            self.failed.emit(str(e))
            return
        except Exception as e:
            _log.debug("Settlement failed:\n%s", traceback.format_exc())
            self.failed.emit(fmt_err("Settlement failed.", e))
            return
        self.succeeded.emit(sale_id)
