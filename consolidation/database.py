"""
SQLite persistence layer for suppliers, materials, invoices and merges.

A single database file (output/suppliers.db) backs the three entity stores
the consolidation code works against:

  suppliers      Persisted suppliers created by an operator.
  materials      Materials; `supplier` holds a supplier NAME, not an id.
                 There is deliberately no foreign key to suppliers.
  invoices       Read-only invoice feed (supplier_name / supplier_vat text).

plus two bookkeeping tables:

  merge_intents  One row per merge, written before the first material is
                 repointed and updated after each one, so an interrupted
                 merge can be resumed.
  audit_log      Append-only history of supplier and merge actions.

Each public method opens its own connection; there are no transactions
spanning several calls.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suppliers (
    id            TEXT PRIMARY KEY,
    company_id    TEXT,
    name          TEXT NOT NULL,
    owner_email   TEXT,
    phone_number  TEXT,
    address       TEXT,
    vat_number    TEXT,
    logo_url      TEXT,
    specialties   TEXT NOT NULL DEFAULT '[]',   -- JSON array of strings
    status        TEXT NOT NULL DEFAULT 'active',
    created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_suppliers_company ON suppliers (company_id);
CREATE INDEX IF NOT EXISTS idx_suppliers_name    ON suppliers (name);

CREATE TABLE IF NOT EXISTS materials (
    id          TEXT PRIMARY KEY,
    company_id  TEXT,
    name        TEXT NOT NULL,
    supplier    TEXT,                -- supplier display name (weak reference)
    unit        TEXT,
    price       REAL
);

CREATE INDEX IF NOT EXISTS idx_materials_company  ON materials (company_id);
CREATE INDEX IF NOT EXISTS idx_materials_supplier ON materials (supplier);

CREATE TABLE IF NOT EXISTS invoices (
    id                TEXT PRIMARY KEY,
    company_id        TEXT,
    supplier_name     TEXT,
    supplier_vat      TEXT,
    supplier_address  TEXT,
    sender_email      TEXT,
    status            TEXT,
    total_amount      REAL,
    invoice_date      TEXT           -- YYYY-MM-DD
);

CREATE INDEX IF NOT EXISTS idx_invoices_company  ON invoices (company_id);
CREATE INDEX IF NOT EXISTS idx_invoices_supplier ON invoices (supplier_name);

CREATE TABLE IF NOT EXISTS merge_intents (
    id                     TEXT PRIMARY KEY,
    source_name            TEXT NOT NULL,
    source_supplier_id     TEXT,
    target_supplier_id     TEXT NOT NULL,
    target_name            TEXT NOT NULL,
    remaining_material_ids TEXT NOT NULL DEFAULT '[]',
    migrated_material_ids  TEXT NOT NULL DEFAULT '[]',
    skipped_material_ids   TEXT NOT NULL DEFAULT '[]',
    failed_material_ids    TEXT NOT NULL DEFAULT '[]',
    status                 TEXT NOT NULL DEFAULT 'in_progress',
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_merge_intents_pair
    ON merge_intents (source_name, target_supplier_id, status);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    entity      TEXT    NOT NULL,   -- supplier | merge
    entity_id   TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | updated | suspended | deleted |
                                    -- merge_started | merge_partial | merge_completed
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_entity    ON audit_log (entity_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_SUPPLIER_COLUMNS = {
    "company_id", "name", "owner_email", "phone_number", "address",
    "vat_number", "logo_url", "specialties", "status",
}
_MATERIAL_COLUMNS = {"company_id", "name", "supplier", "unit", "price"}
_INVOICE_COLUMNS = {
    "company_id", "supplier_name", "supplier_vat", "supplier_address",
    "sender_email", "status", "total_amount", "invoice_date",
}
_INTENT_LIST_COLUMNS = (
    "remaining_material_ids", "migrated_material_ids",
    "skipped_material_ids", "failed_material_ids",
)
_INTENT_COLUMNS = {"status", *_INTENT_LIST_COLUMNS}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _check_columns(data: dict, allowed: set[str], table: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown {table} column(s): {sorted(unknown)}")


class Database:
    """Thin wrapper around an SQLite database file for supplier data."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    def _insert(self, table: str, row: dict) -> None:
        columns = ", ".join(row)
        placeholders = ", ".join(f":{k}" for k in row)
        with self._conn() as conn:
            conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", row)

    def _update(self, table: str, record_id: str, row: dict) -> bool:
        if not row:
            return self._exists(table, record_id)
        assignments = ", ".join(f"{k} = :{k}" for k in row)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = :_id",
                {**row, "_id": record_id},
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def _delete(self, table: str, record_id: str) -> bool:
        with self._conn() as conn:
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def _exists(self, table: str, record_id: str) -> bool:
        with self._conn() as conn:
            row = conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return row is not None

    def _select(self, sql: str, params: tuple | list = ()) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    @staticmethod
    def _supplier_from_row(row: dict) -> dict:
        row["specialties"] = json.loads(row.get("specialties") or "[]")
        return row

    def create_supplier(self, data: dict) -> dict:
        """Insert a supplier and return the stored record (with id and created_at)."""
        _check_columns(data, _SUPPLIER_COLUMNS, "supplier")
        row = {
            "id": _new_id(),
            "status": "active",
            **data,
            "specialties": json.dumps(list(data.get("specialties") or [])),
            "created_at": _now(),
        }
        self._insert("suppliers", row)
        logger.info("DB created supplier: %s (%s)", row["name"], row["id"])
        return self.get_supplier(row["id"])

    def get_supplier(self, supplier_id: str) -> Optional[dict]:
        rows = self._select("SELECT * FROM suppliers WHERE id = ?", (supplier_id,))
        return self._supplier_from_row(rows[0]) if rows else None

    def list_suppliers(
        self,
        company_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[dict]:
        """Return suppliers newest first, optionally scoped to a company / status."""
        clauses: list[str] = []
        params: list = []
        if company_id:
            clauses.append("company_id = ?")
            params.append(company_id)
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._select(
            f"SELECT * FROM suppliers {where} ORDER BY created_at DESC, rowid DESC", params
        )
        return [self._supplier_from_row(r) for r in rows]

    def update_supplier(self, supplier_id: str, partial: dict) -> bool:
        """Apply a partial update. Returns True if the supplier exists."""
        _check_columns(partial, _SUPPLIER_COLUMNS, "supplier")
        row = dict(partial)
        if "specialties" in row:
            row["specialties"] = json.dumps(list(row["specialties"] or []))
        return self._update("suppliers", supplier_id, row)

    def delete_supplier(self, supplier_id: str) -> bool:
        return self._delete("suppliers", supplier_id)

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------

    def create_material(self, data: dict) -> dict:
        _check_columns(data, _MATERIAL_COLUMNS | {"id"}, "material")
        row = {"id": data.get("id") or _new_id(), **{k: v for k, v in data.items() if k != "id"}}
        self._insert("materials", row)
        return self.get_material(row["id"])

    def get_material(self, material_id: str) -> Optional[dict]:
        rows = self._select("SELECT * FROM materials WHERE id = ?", (material_id,))
        return rows[0] if rows else None

    def list_materials(
        self,
        company_id: Optional[str] = None,
        supplier: Optional[str] = None,
    ) -> list[dict]:
        """Return materials, optionally filtered by company and exact supplier name."""
        clauses: list[str] = []
        params: list = []
        if company_id:
            clauses.append("company_id = ?")
            params.append(company_id)
        if supplier is not None:
            clauses.append("supplier = ?")
            params.append(supplier)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return self._select(f"SELECT * FROM materials {where} ORDER BY rowid", params)

    def update_material(self, material_id: str, partial: dict) -> bool:
        _check_columns(partial, _MATERIAL_COLUMNS, "material")
        return self._update("materials", material_id, dict(partial))

    def delete_material(self, material_id: str) -> bool:
        return self._delete("materials", material_id)

    # ------------------------------------------------------------------
    # Invoices (read feed)
    # ------------------------------------------------------------------

    def create_invoice(self, data: dict) -> dict:
        _check_columns(data, _INVOICE_COLUMNS | {"id"}, "invoice")
        row = {"id": data.get("id") or _new_id(), **{k: v for k, v in data.items() if k != "id"}}
        self._insert("invoices", row)
        return self._select("SELECT * FROM invoices WHERE id = ?", (row["id"],))[0]

    def list_invoices(self, company_id: Optional[str] = None) -> list[dict]:
        if company_id:
            return self._select(
                "SELECT * FROM invoices WHERE company_id = ? ORDER BY invoice_date DESC, rowid",
                (company_id,),
            )
        return self._select("SELECT * FROM invoices ORDER BY invoice_date DESC, rowid")

    # ------------------------------------------------------------------
    # Merge intents
    # ------------------------------------------------------------------

    @staticmethod
    def _intent_from_row(row: dict) -> dict:
        for col in _INTENT_LIST_COLUMNS:
            row[col] = json.loads(row.get(col) or "[]")
        return row

    def create_merge_intent(
        self,
        source_name: str,
        source_supplier_id: Optional[str],
        target_supplier_id: str,
        target_name: str,
        material_ids: list[str],
    ) -> dict:
        """Record a merge before it starts. Returns the stored intent."""
        now = _now()
        row = {
            "id": _new_id(),
            "source_name": source_name,
            "source_supplier_id": source_supplier_id,
            "target_supplier_id": target_supplier_id,
            "target_name": target_name,
            "remaining_material_ids": json.dumps(list(material_ids)),
            "status": "in_progress",
            "created_at": now,
            "updated_at": now,
        }
        self._insert("merge_intents", row)
        return self.get_merge_intent(row["id"])

    def get_merge_intent(self, intent_id: str) -> Optional[dict]:
        rows = self._select("SELECT * FROM merge_intents WHERE id = ?", (intent_id,))
        return self._intent_from_row(rows[0]) if rows else None

    def find_open_merge_intent(
        self,
        source_name: str,
        source_supplier_id: Optional[str],
        target_supplier_id: str,
    ) -> Optional[dict]:
        """
        Return the newest unfinished intent for this source/target pair, if any.

        source_supplier_id is None for an inferred source; an intent written
        for an inferred source never matches a persisted one of the same name.
        """
        rows = self._select(
            """SELECT * FROM merge_intents
               WHERE source_name = ? AND source_supplier_id IS ?
                 AND target_supplier_id = ? AND status != 'completed'
               ORDER BY created_at DESC, rowid DESC LIMIT 1""",
            (source_name, source_supplier_id, target_supplier_id),
        )
        return self._intent_from_row(rows[0]) if rows else None

    def update_merge_intent(self, intent_id: str, **fields) -> bool:
        _check_columns(fields, _INTENT_COLUMNS, "merge intent")
        row = {
            k: (json.dumps(list(v)) if k in _INTENT_LIST_COLUMNS else v)
            for k, v in fields.items()
        }
        row["updated_at"] = _now()
        return self._update("merge_intents", intent_id, row)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_audit(
        self,
        entity: str,
        entity_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (entity, entity_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entity,
                    entity_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    def get_audit_log(self, entity_id: str) -> list[dict]:
        """Return all audit entries for one supplier or merge, oldest first."""
        return self._select(
            """SELECT id, entity, entity_id, timestamp, action, actor, detail
               FROM audit_log WHERE entity_id = ?
               ORDER BY timestamp ASC, id ASC""",
            (entity_id,),
        )

    def get_stats(self) -> dict:
        """Return row counts for the check command / health endpoint."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM suppliers)                             AS suppliers,
                    (SELECT COUNT(*) FROM suppliers WHERE status = 'suspended')  AS suspended,
                    (SELECT COUNT(*) FROM materials)                             AS materials,
                    (SELECT COUNT(*) FROM invoices)                              AS invoices,
                    (SELECT COUNT(*) FROM merge_intents WHERE status != 'completed')
                                                                                 AS open_merges
                """
            ).fetchone()
        return dict(row) if row else {}
