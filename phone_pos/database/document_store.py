"""
database/document_store.py

Transactional document store backed by a single sqlite file.

Model
-----
- Documents live at slash-separated paths; collections are the odd-length
  prefixes (``Customers``, ``PhoneBrands/<id>/Models``).
- Field values are JSON; ``DocumentRef`` and ``datetime`` values are encoded
  as ``{"__ref__": path}`` / ``{"__ts__": iso}`` and decoded on read.
- ``run_transaction(fn)`` runs ``fn(txn)`` under ``BEGIN IMMEDIATE``. All
  reads must happen before the first write; writes are buffered and applied
  in order at commit. Lock contention re-runs ``fn`` from scratch, so ``fn``
  must only issue blind writes computed from its own reads or its inputs.
- ``on_snapshot`` listeners get the current state on registration and again
  after every committed write touching their target.

Every connection is opened per operation from the path, so the store can be
shared between the UI thread and pool workers.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid
from contextlib import closing
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

from ..constants import TABLE_DOCUMENTS
from .schema import init_schema

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Any failure of the store itself (I/O, lock contention, bad paths)."""


class DocumentNotFoundError(StoreError):
    pass


class TransactionReadAfterWriteError(StoreError):
    pass


# ---------------------------------------------------------------------------
# Field transforms
# ---------------------------------------------------------------------------

class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


class ArrayUnion:
    """Append each value to an array field unless an equal element is already there."""

    def __init__(self, values: Iterable[Any]):
        self.values = list(values)

    def __repr__(self) -> str:
        return f"ArrayUnion({self.values!r})"


# ---------------------------------------------------------------------------
# References / snapshots
# ---------------------------------------------------------------------------

def _segments(path: str) -> list[str]:
    return [p for p in str(path).strip("/").split("/") if p]


@dataclass(frozen=True)
class DocumentRef:
    path: str

    def __post_init__(self):
        parts = _segments(self.path)
        if not parts or len(parts) % 2 != 0:
            raise StoreError(f"Not a document path: {self.path!r}")
        object.__setattr__(self, "path", "/".join(parts))

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> "CollectionRef":
        return CollectionRef(self.path.rsplit("/", 1)[0])

    def collection(self, name: str) -> "CollectionRef":
        return CollectionRef(f"{self.path}/{name}")


@dataclass(frozen=True)
class Query:
    collection_path: str
    filters: tuple = ()
    limit_to: Optional[int] = None

    def where(self, field_name: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + ((field_name, value),))

    def limit(self, n: int) -> "Query":
        return replace(self, limit_to=int(n))

    def matches(self, data: dict) -> bool:
        return all(f in data and data[f] == v for f, v in self.filters)


@dataclass(frozen=True)
class CollectionRef:
    path: str

    def __post_init__(self):
        parts = _segments(self.path)
        if not parts or len(parts) % 2 != 1:
            raise StoreError(f"Not a collection path: {self.path!r}")
        object.__setattr__(self, "path", "/".join(parts))

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def document(self, doc_id: str | None = None) -> DocumentRef:
        """Reference a child document; a fresh random id is allocated when none is given."""
        return DocumentRef(f"{self.path}/{doc_id or uuid.uuid4().hex}")

    def where(self, field_name: str, value: Any) -> Query:
        return Query(self.path).where(field_name, value)

    def limit(self, n: int) -> Query:
        return Query(self.path).limit(n)


@dataclass(frozen=True)
class DocumentSnapshot:
    reference: DocumentRef
    data: Optional[dict] = None

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field_name: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(field_name, default)

    def to_dict(self) -> Optional[dict]:
        return dict(self.data) if self.data is not None else None


Target = Union[DocumentRef, CollectionRef, Query]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _encode(value: Any) -> Any:
    if isinstance(value, DocumentRef):
        return {"__ref__": value.path}
    if isinstance(value, datetime):
        return {"__ts__": value.isoformat()}
    if isinstance(value, dict):
        return {str(k): _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, (_DeleteField, ArrayUnion)):
        raise StoreError(f"{value!r} is only valid as a top-level field value.")
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and "__ref__" in value:
            return DocumentRef(value["__ref__"])
        if len(value) == 1 and "__ts__" in value:
            return datetime.fromisoformat(value["__ts__"])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _apply_fields(current: dict, fields: dict) -> dict:
    out = dict(current)
    for key, val in fields.items():
        if val is DELETE_FIELD:
            out.pop(key, None)
        elif isinstance(val, ArrayUnion):
            existing = out.get(key)
            items = list(existing) if isinstance(existing, list) else []
            for item in val.values:
                if item not in items:
                    items.append(item)
            out[key] = items
        else:
            out[key] = val
    return out


def _is_busy(exc: sqlite3.Error) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


# ---------------------------------------------------------------------------
# Low-level row access (shared by store reads and transactions)
# ---------------------------------------------------------------------------

def _read_doc(con: sqlite3.Connection, ref: DocumentRef) -> DocumentSnapshot:
    row = con.execute(
        f"SELECT data FROM {TABLE_DOCUMENTS} WHERE path = ?", (ref.path,)
    ).fetchone()
    if row is None:
        return DocumentSnapshot(ref, None)
    return DocumentSnapshot(ref, _decode(json.loads(row["data"])))


def _run_query(con: sqlite3.Connection, query: Query) -> list[DocumentSnapshot]:
    rows = con.execute(
        f"SELECT path, data FROM {TABLE_DOCUMENTS} WHERE collection = ? ORDER BY create_time, path",
        (query.collection_path,),
    ).fetchall()
    out: list[DocumentSnapshot] = []
    for r in rows:
        data = _decode(json.loads(r["data"]))
        if query.matches(data):
            out.append(DocumentSnapshot(DocumentRef(r["path"]), data))
            if query.limit_to is not None and len(out) >= query.limit_to:
                break
    return out


def _upsert(con: sqlite3.Connection, ref: DocumentRef, data: dict) -> None:
    now = datetime.now().isoformat()
    con.execute(
        f"""
        INSERT INTO {TABLE_DOCUMENTS}(path, collection, doc_id, data, create_time, update_time)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(path) DO UPDATE SET data = excluded.data, update_time = excluded.update_time
        """,
        (ref.path, ref.parent.path, ref.id, json.dumps(_encode(data)), now, now),
    )


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class Transaction:
    """
    Handle passed to ``run_transaction`` callbacks.

    Reads go straight to the locked connection; writes are queued and only
    applied once the callback returns.
    """

    def __init__(self, con: sqlite3.Connection):
        self._con = con
        self._writes: list[tuple] = []

    def get(self, target: Union[DocumentRef, Query, CollectionRef]):
        if self._writes:
            raise TransactionReadAfterWriteError(
                "Transactions require all reads to be executed before all writes."
            )
        if isinstance(target, DocumentRef):
            return _read_doc(self._con, target)
        if isinstance(target, CollectionRef):
            target = Query(target.path)
        return _run_query(self._con, target)

    def set(self, ref: DocumentRef, data: dict, *, merge: bool = False) -> "Transaction":
        self._writes.append(("set", ref, dict(data), merge))
        return self

    def update(self, ref: DocumentRef, fields: dict) -> "Transaction":
        self._writes.append(("update", ref, dict(fields), True))
        return self

    def delete(self, ref: DocumentRef) -> "Transaction":
        self._writes.append(("delete", ref, None, False))
        return self

    def _apply(self) -> set[str]:
        touched: set[str] = set()
        for op, ref, data, merge in self._writes:
            if op == "delete":
                self._con.execute(f"DELETE FROM {TABLE_DOCUMENTS} WHERE path = ?", (ref.path,))
            else:
                current = _read_doc(self._con, ref).data
                if op == "update" and current is None:
                    raise DocumentNotFoundError(f"No document to update: {ref.path}")
                base = (current or {}) if merge else {}
                _upsert(self._con, ref, _apply_fields(base, data))
            touched.add(ref.path)
        return touched


# ---------------------------------------------------------------------------
# Listeners
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class _Listener:
    target: Target
    callback: Callable[[Any, Optional[StoreError]], None]
    active: bool = True

    def affected_by(self, paths: set[str]) -> bool:
        if isinstance(self.target, DocumentRef):
            return self.target.path in paths
        col = self.target.path if isinstance(self.target, CollectionRef) else self.target.collection_path
        return any(p.rsplit("/", 1)[0] == col for p in paths)


class ListenerRegistration:
    def __init__(self, store: "DocumentStore", listener: _Listener):
        self._store = store
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener.active

    def remove(self) -> None:
        self._store._remove_listener(self._listener)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class DocumentStore:
    MAX_ATTEMPTS = 5
    RETRY_DELAY = 0.05  # seconds, doubled per attempt

    def __init__(self, db_path: str | Path, *, timeout: float = 5.0):
        self.db_path = str(db_path)
        self._timeout = timeout
        self._listeners: list[_Listener] = []
        self._lock = threading.RLock()
        init_schema(self.db_path)

    # --- connection helper -------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        # autocommit mode; transactions are opened explicitly
        con = sqlite3.connect(self.db_path, timeout=self._timeout, isolation_level=None)
        con.row_factory = sqlite3.Row
        return con

    # --- references --------------------------------------------------------

    @staticmethod
    def collection(path: str) -> CollectionRef:
        return CollectionRef(path)

    @staticmethod
    def document(path: str) -> DocumentRef:
        return DocumentRef(path)

    # --- reads -------------------------------------------------------------

    def get(self, ref: DocumentRef) -> DocumentSnapshot:
        try:
            with closing(self._connect()) as con:
                return _read_doc(con, ref)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def query(self, target: Union[Query, CollectionRef]) -> list[DocumentSnapshot]:
        if isinstance(target, CollectionRef):
            target = Query(target.path)
        try:
            with closing(self._connect()) as con:
                return _run_query(con, target)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    # --- single writes (each its own transaction) --------------------------

    def set(self, ref: DocumentRef, data: dict, *, merge: bool = False) -> None:
        self.run_transaction(lambda txn: txn.set(ref, data, merge=merge))

    def update(self, ref: DocumentRef, fields: dict) -> None:
        self.run_transaction(lambda txn: txn.update(ref, fields))

    def delete(self, ref: DocumentRef) -> None:
        self.run_transaction(lambda txn: txn.delete(ref))

    def add(self, collection: CollectionRef, data: dict) -> DocumentRef:
        ref = collection.document()
        self.set(ref, data)
        return ref

    # --- transactions ------------------------------------------------------

    def run_transaction(self, fn: Callable[[Transaction], Any], *, max_attempts: int | None = None) -> Any:
        """
        Run ``fn`` atomically. Returns whatever ``fn`` returns.

        Exceptions raised by ``fn`` propagate unchanged after rollback;
        sqlite failures surface as ``StoreError``.
        """
        attempts = max_attempts or self.MAX_ATTEMPTS
        last_error: sqlite3.Error | None = None

        for attempt in range(1, attempts + 1):
            try:
                result, touched = self._attempt(fn)
            except sqlite3.OperationalError as e:
                if not _is_busy(e):
                    raise StoreError(str(e)) from e
                last_error = e
                _log.warning("Transaction contention (%d/%d): %s", attempt, attempts, e)
                time.sleep(self.RETRY_DELAY * (2 ** (attempt - 1)))
                continue
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

            self._notify(touched)
            return result

        raise StoreError(f"Transaction failed after {attempts} attempts: {last_error}")

    def _attempt(self, fn: Callable[[Transaction], Any]) -> tuple[Any, set[str]]:
        with closing(self._connect()) as con:
            con.execute("BEGIN IMMEDIATE")
            try:
                txn = Transaction(con)
                result = fn(txn)
                touched = txn._apply()
                con.execute("COMMIT")
            except BaseException:
                if con.in_transaction:
                    con.execute("ROLLBACK")
                raise
        return result, touched

    # --- listeners ---------------------------------------------------------

    def on_snapshot(
        self,
        target: Target,
        callback: Callable[[Any, Optional[StoreError]], None],
    ) -> ListenerRegistration:
        """
        Subscribe to a document (callback gets a DocumentSnapshot) or a
        collection/query (callback gets a list of DocumentSnapshot).
        On read failure the callback gets ``(None, error)``.
        """
        listener = _Listener(target, callback)
        with self._lock:
            self._listeners.append(listener)
        self._deliver(listener)
        return ListenerRegistration(self, listener)

    def _remove_listener(self, listener: _Listener) -> None:
        with self._lock:
            listener.active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, touched: set[str]) -> None:
        if not touched:
            return
        with self._lock:
            targets = [l for l in self._listeners if l.active and l.affected_by(touched)]
        for listener in targets:
            self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        if not listener.active:
            return
        target = listener.target
        try:
            if isinstance(target, DocumentRef):
                payload = self.get(target)
            else:
                payload = self.query(target)
        except StoreError as e:
            self._invoke(listener, None, e)
            return
        self._invoke(listener, payload, None)

    @staticmethod
    def _invoke(listener: _Listener, payload: Any, error: Optional[StoreError]) -> None:
        try:
            listener.callback(payload, error)
        except Exception:
            # the write that triggered this is already committed
            _log.exception("Snapshot listener raised")


__all__ = [
    "ArrayUnion",
    "CollectionRef",
    "DELETE_FIELD",
    "DocumentNotFoundError",
    "DocumentRef",
    "DocumentSnapshot",
    "DocumentStore",
    "ListenerRegistration",
    "Query",
    "StoreError",
    "Transaction",
    "TransactionReadAfterWriteError",
]
