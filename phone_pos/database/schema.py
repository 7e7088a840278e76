from pathlib import Path
import logging
import sqlite3
import sys

from ..constants import TABLE_DOCUMENTS, TABLE_SCHEMA_VERSION, SCHEMA_VERSION

_log = logging.getLogger(__name__)

SQL = rf"""
/* ======================== DOCUMENT STORE ======================== */

/*
  One row per document. `path` is the full slash-separated document path
  (e.g. PhoneBrands/<id>/Models/<id>/Phones/<id>); `collection` is the path
  of the owning collection so collection scans stay on an index.
  `data` holds the JSON-encoded field map.
*/
CREATE TABLE IF NOT EXISTS {TABLE_DOCUMENTS} (
    path        TEXT PRIMARY KEY,
    collection  TEXT NOT NULL,
    doc_id      TEXT NOT NULL,
    data        TEXT NOT NULL DEFAULT '{{}}',
    create_time TEXT NOT NULL,
    update_time TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_collection ON {TABLE_DOCUMENTS}(collection);

CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
    id INTEGER PRIMARY KEY CHECK (id=1),
    version TEXT NOT NULL
);
"""


def get_current_version(conn: sqlite3.Connection) -> str | None:
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row[0] if row else None


def _ensure_version_row(conn: sqlite3.Connection) -> None:
    current = get_current_version(conn)
    if current is None:
        conn.execute(
            f"INSERT INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?);",
            (SCHEMA_VERSION,),
        )
    elif current != SCHEMA_VERSION:
        _log.warning("Store is at schema %s, code expects %s", current, SCHEMA_VERSION)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        # Apply (idempotent) schema
        conn.executescript(SQL)
        _ensure_version_row(conn)
        conn.commit()
    finally:
        conn.close()
    _log.debug("Document schema applied to %s", db_path)


if __name__ == "__main__":
    from ..config import DB_PATH

    target = sys.argv[1] if len(sys.argv) > 1 else DB_PATH
    init_schema(target)
    print(f"✓ DB applied to {target}")
