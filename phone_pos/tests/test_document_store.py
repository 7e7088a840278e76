from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest

from phone_pos.constants import BALANCE_ACCOUNTS, COL_BALANCES, SCHEMA_VERSION
from phone_pos.database import get_store
from phone_pos.database.document_store import (
    ArrayUnion,
    DELETE_FIELD,
    DocumentNotFoundError,
    DocumentRef,
    StoreError,
    TransactionReadAfterWriteError,
)
from phone_pos.database.schema import get_current_version


# --------------------------- references ---------------------------

def test_refs_validate_path_shape(store):
    with pytest.raises(StoreError):
        DocumentRef("Customers")
    with pytest.raises(StoreError):
        store.collection("Customers/alice")

    ref = store.document("PhoneBrands/b1/Models/m1")
    assert ref.id == "m1"
    assert ref.parent.path == "PhoneBrands/b1/Models"
    assert ref.collection("Phones").document("p1").path == "PhoneBrands/b1/Models/m1/Phones/p1"


def test_fresh_document_ids_are_unique(store):
    col = store.collection("Sales")
    assert col.document().id != col.document().id


# --------------------------- get / set / update ---------------------------

def test_set_get_roundtrip_keeps_refs_and_timestamps(store):
    target = store.document("Customers/alice")
    stamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    store.set(store.document("Sales/s1"), {"customerReference": target, "createdAt": stamp, "n": 3})

    snap = store.get(store.document("Sales/s1"))
    assert snap.exists
    assert snap.get("customerReference") == target
    assert snap.get("createdAt") == stamp
    assert snap.get("n") == 3


def test_missing_document_snapshot(store):
    snap = store.get(store.document("Sales/nope"))
    assert not snap.exists
    assert snap.get("anything", "dflt") == "dflt"
    assert snap.to_dict() is None


def test_set_merge_and_update(store):
    ref = store.document("Customers/alice")
    store.set(ref, {"name": "Alice", "balance": 1.0})
    store.set(ref, {"balance": 2.0}, merge=True)
    assert store.get(ref).to_dict() == {"name": "Alice", "balance": 2.0}

    store.update(ref, {"balance": DELETE_FIELD, "Balance": 3.0})
    assert store.get(ref).to_dict() == {"name": "Alice", "Balance": 3.0}

    store.set(ref, {"name": "A"})
    assert store.get(ref).to_dict() == {"name": "A"}


def test_update_missing_document_fails(store):
    with pytest.raises(DocumentNotFoundError):
        store.update(store.document("Customers/ghost"), {"balance": 1})
    assert not store.get(store.document("Customers/ghost")).exists


def test_array_union_appends_only_new_values(store):
    ref = store.document("Customers/alice")
    store.set(ref, {"transactionHistory": [1]})
    store.update(ref, {"transactionHistory": ArrayUnion([1, 2])})
    store.update(ref, {"transactionHistory": ArrayUnion([{"a": 1}])})
    assert store.get(ref).get("transactionHistory") == [1, 2, {"a": 1}]


def test_transforms_rejected_inside_nested_values(store):
    with pytest.raises(StoreError):
        store.set(store.document("Data/x"), {"nested": {"gone": DELETE_FIELD}})


# --------------------------- queries ---------------------------

def test_equality_query_and_limit(store):
    col = store.collection("IMEI")
    phone = store.document("PhoneBrands/b/Models/m/Phones/p")
    store.set(col.document("a"), {"imei": "111", "phoneReference": phone})
    store.set(col.document("b"), {"imei": "222"})
    store.set(col.document("c"), {"imei": "111"})

    hits = store.query(col.where("imei", "111"))
    assert sorted(s.id for s in hits) == ["a", "c"]
    assert len(store.query(col.where("imei", "111").limit(1))) == 1
    assert [s.id for s in store.query(col.where("phoneReference", phone))] == ["a"]
    assert store.query(col.where("imei", "999")) == []


def test_collection_scan_does_not_include_subcollections(store):
    store.set(store.document("PhoneBrands/b1"), {"brand": "Apple"})
    store.set(store.document("PhoneBrands/b1/Models/m1"), {"model": "iPhone 12"})
    assert [s.id for s in store.query(store.collection("PhoneBrands"))] == ["b1"]


# --------------------------- transactions ---------------------------

def test_transaction_returns_result_and_commits_all(store):
    a, b = store.document("Data/a"), store.document("Data/b")

    def fn(txn):
        assert not txn.get(a).exists
        txn.set(a, {"v": 1})
        txn.set(b, {"v": 2})
        return "done"

    assert store.run_transaction(fn) == "done"
    assert store.get(a).get("v") == 1
    assert store.get(b).get("v") == 2


def test_read_after_write_is_rejected(store):
    a = store.document("Data/a")

    def fn(txn):
        txn.set(a, {"v": 1})
        txn.get(a)

    with pytest.raises(TransactionReadAfterWriteError):
        store.run_transaction(fn)
    assert not store.get(a).exists


def test_failure_rolls_back_every_write(store):
    a = store.document("Data/a")
    store.set(a, {"v": 1})

    def fn(txn):
        txn.delete(a)
        txn.set(store.document("Data/b"), {"v": 2})
        txn.update(store.document("Data/missing"), {"v": 3})

    with pytest.raises(DocumentNotFoundError):
        store.run_transaction(fn)
    assert store.get(a).get("v") == 1
    assert not store.get(store.document("Data/b")).exists


def test_errors_from_fn_propagate_unchanged(store):
    class Boom(Exception):
        pass

    def fn(txn):
        txn.set(store.document("Data/a"), {"v": 1})
        raise Boom()

    with pytest.raises(Boom):
        store.run_transaction(fn)
    assert not store.get(store.document("Data/a")).exists


# --------------------------- listeners ---------------------------

def test_document_listener_gets_initial_and_committed_state(store):
    ref = store.document("Data/scanner")
    seen = []
    reg = store.on_snapshot(ref, lambda snap, err: seen.append((snap.get("barcode"), err)))

    store.set(ref, {"barcode": "123"})
    store.set(store.document("Data/other"), {"barcode": "x"})
    store.update(ref, {"barcode": DELETE_FIELD})
    reg.remove()
    store.set(ref, {"barcode": "456"})

    assert seen == [(None, None), ("123", None), (None, None)]
    assert not reg.active


def test_collection_listener_sees_adds(store):
    col = store.collection("OrderNumbers")
    sizes = []
    reg = store.on_snapshot(col, lambda snaps, err: sizes.append(len(snaps)))
    store.add(col, {"orderNumber": 1})
    store.add(col, {"orderNumber": 2})
    reg.remove()
    assert sizes == [0, 1, 2]


def test_listener_exception_does_not_undo_commit(store):
    ref = store.document("Data/a")

    def bad(snap, err):
        if snap.exists:
            raise RuntimeError("listener bug")

    store.on_snapshot(ref, bad)
    store.set(ref, {"v": 1})
    assert store.get(ref).get("v") == 1


# --------------------------- seed ---------------------------

def test_get_store_seeds_balances_once(tmp_path):
    path = tmp_path / "nested" / "pos.db"
    s1 = get_store(path)
    s1.update(s1.document(f"{COL_BALANCES}/cash"), {"amount": 42.0})

    s2 = get_store(path)
    amounts = {a: s2.get(s2.document(f"{COL_BALANCES}/{a}")).get("amount") for a in BALANCE_ACCOUNTS}
    assert amounts == {"cash": 42.0, "bank": 0.0, "creditCard": 0.0}


def test_schema_version_recorded(store):
    con = sqlite3.connect(store.db_path)
    try:
        assert get_current_version(con) == SCHEMA_VERSION
    finally:
        con.close()
