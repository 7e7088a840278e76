# phone_pos/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Every test gets its own store file under tmp_path (seeded balances)
# - Background work goes through the `pool` fixture so teardown can wait
# - Shared inventory/entity seed lives in the `seeded` fixture
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QThreadPool

from phone_pos.constants import COL_CUSTOMERS, COL_MIDDLEMEN, COL_ORDER_NUMBERS, COL_SALES, COL_SUPPLIERS
from phone_pos.database import get_store
from phone_pos.database.repositories import Entity, EntityRole, InventoryRepo
from phone_pos.modules.sales.cart import PhoneItem


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


@pytest.fixture
def pool():
    p = QThreadPool()
    yield p
    p.waitForDone(5000)


# ---------- Store ----------
@pytest.fixture
def store(tmp_path):
    return get_store(tmp_path / "pos.db")


@pytest.fixture
def inventory(store):
    return InventoryRepo(store)


def make_phone(**overrides) -> PhoneItem:
    values = dict(
        brand="Apple",
        model="iPhone 12",
        capacity="128",
        capacity_unit="GB",
        color="Black",
        carrier="Unlocked",
        status="Used",
        storage_location="Shelf A",
        imeis=("123",),
        unit_price=500.0,
        unit_cost=400.0,
    )
    values.update(overrides)
    return PhoneItem(**values)


@pytest.fixture
def seeded(store, inventory):
    """
    One iPhone 12 (IMEI 123) in stock, a customer, a middleman and a
    supplier. Returns the handy ids/refs the tests need.
    """
    phone_refs = inventory.add_phones(make_phone())

    customer_ref = store.collection(COL_CUSTOMERS).document("alice")
    store.set(customer_ref, {"name": "Alice", "balance": 0.0, "transactionHistory": []})

    middleman_ref = store.collection(COL_MIDDLEMEN).document("bob")
    store.set(middleman_ref, {"name": "Bob", "balance": 10.0, "transactionHistory": []})

    supplier_ref = store.collection(COL_SUPPLIERS).document("carol")
    store.set(supplier_ref, {"name": "Carol", "Balance": 5.0})

    return {
        "phone_ref": phone_refs[0],
        "customer_ref": customer_ref,
        "middleman_ref": middleman_ref,
        "supplier_ref": supplier_ref,
        "customer": Entity("alice", "Alice", EntityRole.CUSTOMER, 0.0),
        "middleman": Entity("bob", "Bob", EntityRole.MIDDLEMAN, 10.0),
    }


@pytest.fixture
def phone():
    """Factory for cart phone items; defaults match the seeded iPhone."""
    return make_phone


# ---------- Committed sales ----------
@pytest.fixture
def sale_of(store):
    """Read a committed sale document by id (None when absent)."""
    def read(sale_id):
        return store.get(store.collection(COL_SALES).document(sale_id)).to_dict()
    return read


@pytest.fixture
def order_of(store):
    """Read the OrderNumbers allocation that points at a sale."""
    def read(sale_id):
        sale_ref = store.collection(COL_SALES).document(sale_id)
        q = store.collection(COL_ORDER_NUMBERS).where("salesReference", sale_ref).limit(1)
        snaps = store.query(q)
        return snaps[0].to_dict() if snaps else None
    return read
