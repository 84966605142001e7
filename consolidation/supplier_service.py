"""
Supplier management on top of the entity stores.

SupplierService loads persisted suppliers, materials and invoices, folds in
inferred suppliers, and implements the operator actions around them:
create / edit (validated), promote an inferred supplier to a real profile,
retire (suspend when dependent data exists, delete otherwise), search,
ordering and merge-target suggestions.
"""
import logging
import re
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from config import Config
from models.invoice import Invoice
from models.material import Material
from models.result import MergeCandidate, SupplierListEntry
from models.supplier import (
    InferredSupplier,
    PersistedSupplier,
    SupplierIdentity,
    SupplierStatus,
    SPECIALTY_OPTIONS,
)
from .database import Database
from .duplicate_detector import detect_duplicates, suggest_merge_targets
from .errors import ConflictError, NotFoundError, ValidationError
from .synthesizer import synthesize_identities
from .usage_stats import compute_usage_stats, count_invoices_by_name

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"\S+@\S+\.\S")


def _clean(value: Optional[str]) -> Optional[str]:
    """Trim a string; blank becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class SupplierForm(BaseModel):
    """Operator-entered supplier fields, normalised for storage."""
    name: Optional[str] = Field(default=None, validate_default=True)
    owner_email: Optional[str] = Field(default=None, validate_default=True)
    phone_number: Optional[str] = None
    address: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    status: SupplierStatus = "active"

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: Optional[str]) -> str:
        value = _clean(value)
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("owner_email")
    @classmethod
    def _email_valid(cls, value: Optional[str]) -> str:
        value = _clean(value)
        if not value or not _EMAIL_RE.search(value):
            raise ValueError("A valid e-mail address is required")
        return value.lower()

    @field_validator("phone_number", "address", "vat_number", "logo_url")
    @classmethod
    def _strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return _clean(value)

    @field_validator("specialties")
    @classmethod
    def _known_specialties(cls, value: List[str]) -> List[str]:
        unknown = [s for s in value if s not in SPECIALTY_OPTIONS]
        if unknown:
            raise ValueError(f"Unknown specialties: {', '.join(unknown)}")
        return list(dict.fromkeys(value))


def validate_supplier_form(data: dict) -> SupplierForm:
    """Validate raw supplier fields, raising our ValidationError on failure."""
    try:
        return SupplierForm.model_validate(data)
    except PydanticValidationError as exc:
        errors: dict[str, str] = {}
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "__root__"
            errors[field] = err["msg"].removeprefix("Value error, ")
        raise ValidationError(errors) from exc


# ----------------------------------------------------------------------
# Listing helpers
# ----------------------------------------------------------------------

def search_identities(identities: Iterable[SupplierIdentity], term: Optional[str]) -> list[SupplierIdentity]:
    """Case-insensitive substring search over name, e-mail, VAT, address and phone."""
    identities = list(identities)
    if not term:
        return identities
    needle = term.lower()
    matches = []
    for identity in identities:
        haystack = [identity.name, identity.vat_number]
        if isinstance(identity, PersistedSupplier):
            haystack += [identity.owner_email, identity.address, identity.phone_number]
        if any(needle in (value or "").lower() for value in haystack):
            matches.append(identity)
    return matches


def sort_identities(
    identities: Iterable[SupplierIdentity],
    duplicates: set[str],
    invoice_counts: dict[str, int],
) -> list[SupplierIdentity]:
    """Possible duplicates first, then most invoices, then alphabetical."""
    return sorted(
        identities,
        key=lambda s: (
            s.identity_key not in duplicates,
            -invoice_counts.get(s.name, 0),
            (s.name or "").lower(),
        ),
    )


class SupplierService:
    """Operator-facing supplier actions backed by a Database."""

    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or Config()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_records(
        self, company_id: Optional[str] = None,
    ) -> tuple[list[PersistedSupplier], list[Material], list[Invoice]]:
        suppliers = [PersistedSupplier.model_validate(r) for r in self.db.list_suppliers(company_id)]
        materials = [Material.model_validate(r) for r in self.db.list_materials(company_id)]
        invoices = [Invoice.model_validate(r) for r in self.db.list_invoices(company_id)]
        return suppliers, materials, invoices

    def load_identities(self, company_id: Optional[str] = None) -> list[SupplierIdentity]:
        """Persisted suppliers plus the inferred ones, rebuilt from the stores."""
        return synthesize_identities(*self.load_records(company_id))

    def find_identity(
        self,
        name: Optional[str] = None,
        supplier_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> SupplierIdentity:
        """
        Look up an identity in the current identity set, by persisted id or
        by name. A name shared by several persisted suppliers resolves to the
        first one loaded.
        """
        for identity in self.load_identities(company_id):
            if supplier_id and identity.identity_key == supplier_id and not identity.is_inferred:
                return identity
            if not supplier_id and name is not None and identity.name == name:
                return identity
        raise NotFoundError(f"Supplier not found: {supplier_id or name!r}")

    def overview(
        self,
        company_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[SupplierListEntry]:
        """The supplier list as shown to operators: flagged, counted and ordered."""
        suppliers, materials, invoices = self.load_records(company_id)
        identities = synthesize_identities(suppliers, materials, invoices)
        duplicates = detect_duplicates(identities, self.config.duplicate_similarity_threshold)
        stats = compute_usage_stats(identities, materials, invoices)
        invoice_counts = count_invoices_by_name(invoices)

        visible = sort_identities(search_identities(identities, search), duplicates, invoice_counts)
        return [
            SupplierListEntry(
                identity=identity,
                is_possible_duplicate=identity.identity_key in duplicates,
                invoice_count=invoice_counts.get(identity.name, 0),
                stats=stats[identity.name],
            )
            for identity in visible
        ]

    def merge_candidates(
        self,
        source: SupplierIdentity,
        company_id: Optional[str] = None,
    ) -> list[MergeCandidate]:
        return suggest_merge_targets(
            source,
            self.load_identities(company_id),
            threshold=self.config.merge_suggestion_threshold,
            limit=self.config.merge_suggestion_limit,
        )

    # ------------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------------

    def create_supplier(
        self,
        data: dict,
        company_id: Optional[str] = None,
        actor: str = "system",
    ) -> PersistedSupplier:
        form = validate_supplier_form(data)
        row = self.db.create_supplier({**form.model_dump(), "company_id": company_id})
        self.db.log_audit("supplier", row["id"], "created", actor=actor, detail={"name": form.name})
        logger.info("Supplier created: %s (%s)", form.name, row["id"])
        return PersistedSupplier.model_validate(row)

    def update_supplier(
        self,
        supplier_id: str,
        data: dict,
        actor: str = "system",
    ) -> PersistedSupplier:
        """Apply edited fields on top of the stored record and re-validate the whole."""
        current = self.db.get_supplier(supplier_id)
        if current is None:
            raise NotFoundError(f"Supplier not found: {supplier_id}")

        editable = set(SupplierForm.model_fields)
        merged = {k: v for k, v in current.items() if k in editable}
        merged.update({k: v for k, v in data.items() if k in editable})
        form = validate_supplier_form(merged)

        changes = {k: v for k, v in form.model_dump().items() if current.get(k) != v}
        self.db.update_supplier(supplier_id, changes)
        if changes:
            self.db.log_audit(
                "supplier", supplier_id, "updated", actor=actor, detail={"fields": sorted(changes)},
            )
            logger.info("Supplier updated: %s (%s) fields=%s", form.name, supplier_id, sorted(changes))
        return PersistedSupplier.model_validate(self.db.get_supplier(supplier_id))

    def promote_inferred(
        self,
        identity: InferredSupplier,
        data: Optional[dict] = None,
        company_id: Optional[str] = None,
        actor: str = "system",
    ) -> PersistedSupplier:
        """
        Create a real supplier profile for an inferred supplier.

        The name is kept so existing materials and invoices keep pointing at
        it. VAT number, address and e-mail default to what the first invoice
        naming this supplier carries.
        """
        if not isinstance(identity, InferredSupplier):
            raise ConflictError(f"'{identity.name}' already has a supplier profile")

        existing = self.db.list_suppliers(company_id)
        if any(s["name"] == identity.name for s in existing):
            raise ConflictError(f"'{identity.name}' already has a supplier profile")

        invoice = next(
            (
                inv for inv in self.db.list_invoices(company_id)
                if inv["supplier_name"] == identity.name
            ),
            None,
        )
        defaults = {}
        if invoice:
            defaults = {
                "vat_number": invoice.get("supplier_vat"),
                "address": invoice.get("supplier_address"),
                "owner_email": invoice.get("sender_email"),
            }

        fields = {k: v for k, v in (data or {}).items() if v not in (None, "")}
        merged = {**defaults, **fields, "name": identity.name, "status": "active"}
        supplier = self.create_supplier(merged, company_id=company_id, actor=actor)
        logger.info("Inferred supplier promoted to profile: %s", identity.name)
        return supplier

    # ------------------------------------------------------------------
    # Retire
    # ------------------------------------------------------------------

    def retire_supplier(self, identity: SupplierIdentity, actor: str = "system") -> str:
        """
        Remove a supplier from active use.

        Returns "suspended" when materials or invoices still name the supplier
        (its data is kept), or "deleted" when nothing refers to it.
        """
        if isinstance(identity, InferredSupplier):
            raise ConflictError(
                f"'{identity.name}' has no supplier profile and cannot be deleted. "
                "Remove its materials and invoices, or create a profile and suspend it."
            )

        current = self.db.get_supplier(identity.id)
        if current is None:
            raise NotFoundError(f"Supplier not found: {identity.id}")

        name = current["name"]
        company_id = current.get("company_id")
        material_count = len(self.db.list_materials(company_id, supplier=name))
        invoice_count = sum(
            1 for inv in self.db.list_invoices(company_id) if inv["supplier_name"] == name
        )

        if material_count or invoice_count:
            self.db.update_supplier(identity.id, {"status": "suspended"})
            self.db.log_audit(
                "supplier", identity.id, "suspended", actor=actor,
                detail={"materials": material_count, "invoices": invoice_count},
            )
            logger.info(
                "Supplier suspended: %s (%d materials, %d invoices kept)",
                name, material_count, invoice_count,
            )
            return "suspended"

        self.db.delete_supplier(identity.id)
        self.db.log_audit("supplier", identity.id, "deleted", actor=actor, detail={"name": name})
        logger.info("Supplier deleted: %s (%s)", name, identity.id)
        return "deleted"
