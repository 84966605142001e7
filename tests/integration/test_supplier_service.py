"""
Integration tests for SupplierService against a real database.
"""
import pytest

from consolidation.errors import ConflictError, NotFoundError, ValidationError
from models.supplier import InferredSupplier, PersistedSupplier


@pytest.mark.integration
class TestOverview:
    """Tests for loading, listing and lookup."""

    def test_identities_include_inferred(self, seeded_db, service):
        identities = service.load_identities()
        inferred = {i.name for i in identities if i.is_inferred}
        assert inferred == {"Lokale Verfwinkel", "Jansen schilderwerken "}
        assert len([i for i in identities if not i.is_inferred]) == 4

    def test_overview_order_and_flags(self, seeded_db, service):
        entries = service.overview()
        keys = [e.identity.identity_key for e in entries]

        # Possible duplicates come first
        assert keys[:2] == [seeded_db["jansen"], "Jansen schilderwerken "]
        assert all(e.is_possible_duplicate for e in entries[:2])
        assert not any(e.is_possible_duplicate for e in entries[2:])

        # Then most invoices
        assert keys[2:4] == [seeded_db["centraal"], "Lokale Verfwinkel"]
        assert keys[4:] == [seeded_db["abc"], seeded_db["abc_groep"]]

    def test_overview_stats(self, seeded_db, service):
        entries = {e.identity.name: e for e in service.overview()}

        centraal = entries["Verfwinkel Centraal"]
        assert centraal.invoice_count == 3
        assert centraal.stats.total_approved_revenue == 750
        assert centraal.stats.current_month_approved_revenue == 500
        assert centraal.stats.approved_invoice_count == 2
        assert centraal.stats.material_count == 1

        lokaal = entries["Lokale Verfwinkel"]
        assert lokaal.stats.material_count == 3
        assert lokaal.stats.total_approved_revenue == 120

    def test_overview_search(self, seeded_db, service):
        names = [e.identity.name for e in service.overview(search="abc")]
        assert names == ["ABC Verf", "ABC Verf Groep"]

    def test_find_identity(self, seeded_db, service):
        assert service.find_identity(supplier_id=seeded_db["abc"]).name == "ABC Verf"
        assert service.find_identity(name="Lokale Verfwinkel") == InferredSupplier(name="Lokale Verfwinkel")
        with pytest.raises(NotFoundError):
            service.find_identity(name="Kwastenmakerij")
        with pytest.raises(NotFoundError):
            service.find_identity(supplier_id="Lokale Verfwinkel")

    def test_merge_candidates(self, seeded_db, service):
        source = service.find_identity(name="Jansen schilderwerken ")
        candidates = service.merge_candidates(source)
        assert candidates[0].supplier.id == seeded_db["jansen"]
        assert candidates[0].score == 100


@pytest.mark.integration
class TestCreateAndUpdate:
    """Tests for creating and editing supplier profiles."""

    def test_create_supplier(self, service, test_db):
        supplier = service.create_supplier(
            {"name": " Kwastenmakerij ", "owner_email": "Verkoop@Kwasten.be"},
            company_id="c1", actor="test",
        )
        assert isinstance(supplier, PersistedSupplier)
        assert supplier.name == "Kwastenmakerij"
        assert supplier.owner_email == "verkoop@kwasten.be"
        assert supplier.company_id == "c1"
        assert [e["action"] for e in test_db.get_audit_log(supplier.id)] == ["created"]

    def test_create_invalid_writes_nothing(self, service, test_db):
        with pytest.raises(ValidationError):
            service.create_supplier({"name": "", "owner_email": "nope"})
        assert test_db.list_suppliers() == []

    def test_update_supplier(self, seeded_db, service, test_db):
        updated = service.update_supplier(seeded_db["jansen"], {"vat_number": "BE0444444444"})
        assert updated.vat_number == "BE0444444444"
        assert updated.name == "Jansen Schilderwerken"

        entries = test_db.get_audit_log(seeded_db["jansen"])
        assert entries[-1]["action"] == "updated"

    def test_update_without_changes_not_audited(self, seeded_db, service, test_db):
        service.update_supplier(seeded_db["jansen"], {"name": "Jansen Schilderwerken"})
        assert test_db.get_audit_log(seeded_db["jansen"]) == []

    def test_update_invalid(self, seeded_db, service):
        with pytest.raises(ValidationError) as exc_info:
            service.update_supplier(seeded_db["jansen"], {"owner_email": ""})
        assert "owner_email" in exc_info.value.errors

    def test_update_missing(self, service):
        with pytest.raises(NotFoundError):
            service.update_supplier("missing", {"name": "X"})


@pytest.mark.integration
class TestPromote:
    """Tests for turning an inferred supplier into a profile."""

    def test_promote_uses_invoice_details(self, seeded_db, service):
        supplier = service.promote_inferred(InferredSupplier(name="Lokale Verfwinkel"))

        assert supplier.name == "Lokale Verfwinkel"
        assert supplier.vat_number == "BE0555555555"
        assert supplier.address == "Kerkstraat 1, Gent"
        assert supplier.owner_email == "facturen@lokaleverf.be"
        assert supplier.status == "active"

        inferred = [i.name for i in service.load_identities() if i.is_inferred]
        assert "Lokale Verfwinkel" not in inferred

    def test_promote_operator_fields_win(self, seeded_db, service):
        supplier = service.promote_inferred(
            InferredSupplier(name="Lokale Verfwinkel"),
            {"owner_email": "info@lokaleverf.be", "address": "", "specialties": ["Verf"]},
        )
        assert supplier.owner_email == "info@lokaleverf.be"
        assert supplier.address == "Kerkstraat 1, Gent"
        assert supplier.specialties == ["Verf"]

    def test_promote_without_invoice_needs_email(self, seeded_db, service):
        with pytest.raises(ValidationError):
            service.promote_inferred(InferredSupplier(name="Jansen schilderwerken "))

    def test_promote_persisted_rejected(self, seeded_db, service, test_db):
        with pytest.raises(ConflictError):
            service.promote_inferred(PersistedSupplier.model_validate(test_db.get_supplier(seeded_db["abc"])))

    def test_promote_existing_name_rejected(self, seeded_db, service):
        with pytest.raises(ConflictError):
            service.promote_inferred(InferredSupplier(name="ABC Verf"))


@pytest.mark.integration
class TestRetire:
    """Tests for suspending or deleting suppliers."""

    def test_suspend_when_data_attached(self, seeded_db, service, test_db):
        identity = service.find_identity(supplier_id=seeded_db["centraal"])
        assert service.retire_supplier(identity) == "suspended"
        assert test_db.get_supplier(seeded_db["centraal"])["status"] == "suspended"

    def test_delete_when_unreferenced(self, seeded_db, service, test_db):
        identity = service.find_identity(supplier_id=seeded_db["abc"])
        assert service.retire_supplier(identity, actor="test") == "deleted"
        assert test_db.get_supplier(seeded_db["abc"]) is None
        assert test_db.get_audit_log(seeded_db["abc"])[-1]["action"] == "deleted"

    def test_inferred_cannot_be_retired(self, seeded_db, service):
        with pytest.raises(ConflictError):
            service.retire_supplier(InferredSupplier(name="Lokale Verfwinkel"))

    def test_retire_missing(self, seeded_db, service, test_db):
        identity = service.find_identity(supplier_id=seeded_db["abc"])
        test_db.delete_supplier(seeded_db["abc"])
        with pytest.raises(NotFoundError):
            service.retire_supplier(identity)
