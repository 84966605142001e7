"""
Pytest configuration and shared fixtures for the supplier consolidation suite.
"""
import os
import shutil
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="suppliers_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories and defaults."""
    for var in ("DUPLICATE_SIMILARITY_THRESHOLD", "MERGE_SUGGESTION_THRESHOLD",
                "MERGE_SUGGESTION_LIMIT", "COMPANY_ID"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))

    from config import Config

    config = Config()
    config.db_path = temp_dir / "output" / "suppliers.db"
    config.data_dir = temp_dir / "data"
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from consolidation.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def service(test_db, test_config) -> "SupplierService":
    from consolidation.supplier_service import SupplierService
    return SupplierService(test_db, test_config)


@pytest.fixture
def make_flaky_db(test_config):
    """
    Factory for a Database whose material updates raise for selected ids.

    The returned instance shares the test database file; set its fail_ids
    to an empty set to let the failing updates through again.
    """
    from consolidation.database import Database

    class FlakyDatabase(Database):
        def __init__(self, db_path, fail_ids=()):
            super().__init__(db_path)
            self.fail_ids = set(fail_ids)

        def update_material(self, material_id, partial):
            if material_id in self.fail_ids:
                raise RuntimeError(f"store unavailable for {material_id}")
            return super().update_material(material_id, partial)

    def _make(*fail_ids: str) -> "Database":
        return FlakyDatabase(test_config.db_path, fail_ids)

    return _make


def _month_ago(today: date) -> date:
    """A date in the previous calendar month."""
    return today.replace(day=1) - timedelta(days=1)


@pytest.fixture
def seeded_db(test_db) -> dict:
    """
    Populate the database with a small painting-contractor data set.

    Returns a dict of the created supplier ids keyed by a short label.
    """
    today = date.today()
    ids = {}

    ids["centraal"] = test_db.create_supplier({
        "name": "Verfwinkel Centraal",
        "owner_email": "info@verfwinkel-centraal.be",
        "vat_number": "BE0999999999",
        "specialties": ["Verf", "Gereedschap"],
    })["id"]
    ids["jansen"] = test_db.create_supplier({
        "name": "Jansen Schilderwerken",
        "owner_email": "jansen@example.be",
    })["id"]
    ids["abc"] = test_db.create_supplier({
        "name": "ABC Verf",
        "owner_email": "sales@abcverf.nl",
        "vat_number": "NL111111111B01",
    })["id"]
    ids["abc_groep"] = test_db.create_supplier({
        "name": "ABC Verf Groep",
        "owner_email": "groep@abcverf.nl",
        "vat_number": "NL222222222B01",
    })["id"]

    for mid in ("M-1", "M-2", "M-3"):
        test_db.create_material({"id": mid, "name": f"Muurverf wit {mid}", "supplier": "Lokale Verfwinkel"})
    test_db.create_material({"id": "M-4", "name": "Afplaktape 25mm", "supplier": "Verfwinkel Centraal"})
    test_db.create_material({"id": "M-5", "name": "Schuurpapier P120", "supplier": "Jansen schilderwerken "})

    test_db.create_invoice({
        "id": "INV-1", "supplier_name": "Lokale Verfwinkel", "supplier_vat": "BE0555555555",
        "supplier_address": "Kerkstraat 1, Gent", "sender_email": "facturen@lokaleverf.be",
        "status": "approved", "total_amount": 120.0, "invoice_date": today.isoformat(),
    })
    test_db.create_invoice({
        "id": "INV-2", "supplier_name": "Verfwinkel Centraal", "status": "approved",
        "total_amount": 500.0, "invoice_date": today.isoformat(),
    })
    test_db.create_invoice({
        "id": "INV-3", "supplier_name": "Verfwinkel Centraal", "status": "rejected",
        "total_amount": 9000.0, "invoice_date": today.isoformat(),
    })
    test_db.create_invoice({
        "id": "INV-4", "supplier_name": "Verfwinkel Centraal", "status": "approved",
        "total_amount": 250.0, "invoice_date": _month_ago(today).isoformat(),
    })
    return ids


@pytest.fixture
def sample_suppliers_csv(temp_dir: Path) -> Path:
    """Create a sample suppliers CSV file."""
    csv_path = temp_dir / "suppliers.csv"
    content = """name,owner_email,phone_number,address,vat_number,logo_url,specialties,status,company_id
Verfgroothandel BV,info@verfgroothandel.be,09 123 45 67,"Industrieweg 4, Gent",BE0123456789,,Verf|Primers & Grondverf,active,
Verfgroothandel,orders@verfgroothandel.be,,,BE0123456789,,,,
Zonder Mail,,,,,,,,
Ladderhuis,verkoop@ladderhuis.be,,,,,Ladders & Steigers,suspended,"""
    csv_path.write_text(content, encoding="utf-8")
    return csv_path


@pytest.fixture
def sample_materials_csv(temp_dir: Path) -> Path:
    csv_path = temp_dir / "materials.csv"
    content = """id,name,supplier,unit,price,company_id
MAT-1,Muurverf wit 10L,Verfgroothandel BV,emmer,"64,95",
MAT-2,Roller 25cm,Kwastenmakerij,st,8.50,
,Plamuurmes,,st,,"""
    csv_path.write_text(content, encoding="utf-8")
    return csv_path


@pytest.fixture
def sample_invoices_csv(temp_dir: Path) -> Path:
    csv_path = temp_dir / "invoices.csv"
    content = """id,supplier_name,supplier_vat,supplier_address,sender_email,status,total_amount,invoice_date,company_id
F-2024-001,Verfgroothandel BV,BE0123456789,,,approved,1210.00,2024-03-05,
F-2024-002,Kwastenmakerij,,,,pending,89.90,2024-03-06,"""
    csv_path.write_text(content, encoding="utf-8")
    return csv_path


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
