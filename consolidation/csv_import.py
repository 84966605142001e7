"""
CSV import of suppliers, materials and invoices.

Used to seed a database from exports of the hosted entity store.

CSV formats (header row required, extra columns ignored):
  suppliers.csv  name, owner_email, phone_number, address, vat_number,
                 logo_url, specialties, status, company_id
                 specialties: pipe-separated, e.g. "Verf|Gereedschap"
  materials.csv  id, name, supplier, unit, price, company_id
  invoices.csv   id, supplier_name, supplier_vat, supplier_address,
                 sender_email, status, total_amount, invoice_date, company_id
"""
import csv
import logging
from pathlib import Path
from typing import Optional

from .database import Database
from .errors import ValidationError
from .supplier_service import validate_supplier_form

logger = logging.getLogger(__name__)

_MATERIAL_FIELDS = ("id", "name", "supplier", "unit", "price", "company_id")
_INVOICE_FIELDS = (
    "id", "supplier_name", "supplier_vat", "supplier_address", "sender_email",
    "status", "total_amount", "invoice_date", "company_id",
)


def load_dicts(path: Path) -> list[dict]:
    """Load a CSV file as a list of dictionaries (empty if the file is missing)."""
    if not path.exists():
        logger.warning("CSV file not found: %s", path)
        return []
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _to_float(value: Optional[str]) -> Optional[float]:
    value = _blank_to_none(value)
    return float(value.replace(",", ".")) if value else None


def import_suppliers(db: Database, path: Path) -> int:
    """Import suppliers; invalid rows are logged and skipped."""
    count = 0
    for line_no, row in enumerate(load_dicts(path), start=2):
        specialties = [s.strip() for s in (row.get("specialties") or "").split("|") if s.strip()]
        try:
            form = validate_supplier_form({
                "name": row.get("name"),
                "owner_email": row.get("owner_email"),
                "phone_number": row.get("phone_number"),
                "address": row.get("address"),
                "vat_number": row.get("vat_number"),
                "logo_url": row.get("logo_url"),
                "specialties": specialties,
                "status": _blank_to_none(row.get("status")) or "active",
            })
        except ValidationError as exc:
            logger.warning("%s line %d skipped: %s", path.name, line_no, exc.message)
            continue
        db.create_supplier({**form.model_dump(), "company_id": _blank_to_none(row.get("company_id"))})
        count += 1
    logger.info("Imported %d suppliers from %s", count, path.name)
    return count


def import_materials(db: Database, path: Path) -> int:
    count = 0
    for line_no, row in enumerate(load_dicts(path), start=2):
        record = {k: _blank_to_none(row.get(k)) for k in _MATERIAL_FIELDS}
        if not record["name"]:
            logger.warning("%s line %d skipped: material name missing", path.name, line_no)
            continue
        try:
            record["price"] = _to_float(row.get("price"))
        except ValueError:
            logger.warning("%s line %d skipped: invalid price %r", path.name, line_no, row.get("price"))
            continue
        db.create_material({k: v for k, v in record.items() if k != "id" or v})
        count += 1
    logger.info("Imported %d materials from %s", count, path.name)
    return count


def import_invoices(db: Database, path: Path) -> int:
    count = 0
    for line_no, row in enumerate(load_dicts(path), start=2):
        record = {k: _blank_to_none(row.get(k)) for k in _INVOICE_FIELDS}
        try:
            record["total_amount"] = _to_float(row.get("total_amount"))
        except ValueError:
            logger.warning(
                "%s line %d skipped: invalid total_amount %r", path.name, line_no, row.get("total_amount"),
            )
            continue
        db.create_invoice({k: v for k, v in record.items() if k != "id" or v})
        count += 1
    logger.info("Imported %d invoices from %s", count, path.name)
    return count


def import_csv(
    db: Database,
    suppliers_csv: Optional[Path] = None,
    materials_csv: Optional[Path] = None,
    invoices_csv: Optional[Path] = None,
) -> dict[str, int]:
    """Import whichever of the three files are given. Returns counts per kind."""
    counts = {"suppliers": 0, "materials": 0, "invoices": 0}
    if suppliers_csv:
        counts["suppliers"] = import_suppliers(db, Path(suppliers_csv))
    if materials_csv:
        counts["materials"] = import_materials(db, Path(materials_csv))
    if invoices_csv:
        counts["invoices"] = import_invoices(db, Path(invoices_csv))
    return counts
