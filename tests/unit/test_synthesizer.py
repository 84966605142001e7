"""
Unit tests for inferred supplier synthesis.
"""
import pytest

from consolidation.synthesizer import referenced_supplier_names, synthesize_identities
from models.invoice import Invoice
from models.material import Material
from models.supplier import InferredSupplier, PersistedSupplier


@pytest.fixture
def suppliers():
    return [
        PersistedSupplier(id="s1", name="Verfwinkel Centraal"),
        PersistedSupplier(id="s2", name="Jansen Schilderwerken"),
    ]


@pytest.fixture
def materials():
    return [
        Material(id="m1", name="Muurverf wit", supplier="Lokale Verfwinkel"),
        Material(id="m2", name="Afplaktape", supplier="Verfwinkel Centraal"),
        Material(id="m3", name="Roller", supplier="Lokale Verfwinkel"),
        Material(id="m4", name="Kwast", supplier=None),
        Material(id="m5", name="Schuurpapier", supplier=""),
    ]


@pytest.fixture
def invoices():
    return [
        Invoice(id="i1", supplier_name="Kwastenmakerij", status="approved"),
        Invoice(id="i2", supplier_name="Lokale Verfwinkel", status="pending"),
        Invoice(id="i3", supplier_name=None),
    ]


@pytest.mark.unit
class TestSynthesizeIdentities:
    """Tests for synthesize_identities."""

    def test_referenced_names_in_first_seen_order(self, materials, invoices):
        names = referenced_supplier_names(materials, invoices)
        assert names == ["Lokale Verfwinkel", "Verfwinkel Centraal", "Kwastenmakerij"]

    def test_persisted_first_then_inferred(self, suppliers, materials, invoices):
        identities = synthesize_identities(suppliers, materials, invoices)
        assert identities[:2] == suppliers
        assert identities[2:] == [
            InferredSupplier(name="Lokale Verfwinkel"),
            InferredSupplier(name="Kwastenmakerij"),
        ]

    def test_no_inferred_for_persisted_names(self, suppliers, materials, invoices):
        identities = synthesize_identities(suppliers, materials, invoices)
        inferred = [i.name for i in identities if i.is_inferred]
        assert "Verfwinkel Centraal" not in inferred

    def test_case_difference_is_still_inferred(self, suppliers):
        """Name matching is exact: a case variant surfaces as its own identity."""
        materials = [Material(id="m1", name="Roller", supplier="jansen schilderwerken")]
        identities = synthesize_identities(suppliers, materials, [])
        assert InferredSupplier(name="jansen schilderwerken") in identities

    def test_each_name_once(self, suppliers, materials, invoices):
        identities = synthesize_identities(suppliers, materials, invoices)
        names = [i.name for i in identities]
        assert len(names) == len(set(names))

    def test_empty_names_ignored(self, suppliers, materials, invoices):
        identities = synthesize_identities(suppliers, materials, invoices)
        assert all(i.name for i in identities)

    def test_deterministic_and_inputs_untouched(self, suppliers, materials, invoices):
        before = [m.model_copy() for m in materials]
        first = synthesize_identities(suppliers, materials, invoices)
        second = synthesize_identities(suppliers, materials, invoices)
        assert first == second
        assert materials == before

    def test_inferred_identity_shape(self):
        identity = InferredSupplier(name="Kwastenmakerij")
        assert identity.id is None
        assert identity.vat_number is None
        assert identity.identity_key == "Kwastenmakerij"
        assert identity.is_inferred is True

    def test_nothing_referenced(self, suppliers):
        assert synthesize_identities(suppliers, [], []) == suppliers
