# database/__init__.py
from __future__ import annotations

from pathlib import Path

from ..config import DB_PATH
from .document_store import DocumentStore
from .seeders.default_data import seed as seed_default_data


def get_store(db_path: str | Path | None = None) -> DocumentStore:
    """
    Returns a DocumentStore on `db_path` (default: config.DB_PATH).
    Schema and seed data are applied idempotently.
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    store = DocumentStore(path)

    # Seeders should be safe to run repeatedly (idempotent).
    seed_default_data(store)
    return store


__all__ = [
    "get_store",
]
