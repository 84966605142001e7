from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from .supplier import PersistedSupplier, SupplierIdentity


MergeStatus = Literal["in_progress", "partial", "completed"]


class UsageStats(BaseModel):
    """Approved-invoice revenue and material usage for one supplier name."""
    total_approved_revenue: float = 0.0
    current_month_approved_revenue: float = 0.0
    approved_invoice_count: int = 0
    material_count: int = 0


class SupplierListEntry(BaseModel):
    """One row of the supplier overview: identity, duplicate flag and usage."""
    identity: SupplierIdentity
    is_possible_duplicate: bool = False
    invoice_count: int = 0                  # all statuses, used for ordering
    stats: UsageStats = Field(default_factory=UsageStats)


class MergeCandidate(BaseModel):
    """A persisted supplier offered as the target of a merge."""
    supplier: PersistedSupplier
    match_method: str                       # "vat_exact" or "name_fuzzy"
    score: int                              # 0-100


class MergeIntent(BaseModel):
    """
    Persisted record of a merge, written before any material is touched.
    remaining_material_ids shrinks as materials are repointed, so a retried
    merge continues where the last attempt stopped.
    """
    id: str
    source_name: str
    source_supplier_id: Optional[str] = None    # None when the source was inferred
    target_supplier_id: str
    target_name: str
    remaining_material_ids: List[str] = Field(default_factory=list)
    migrated_material_ids: List[str] = Field(default_factory=list)
    skipped_material_ids: List[str] = Field(default_factory=list)
    failed_material_ids: List[str] = Field(default_factory=list)
    status: MergeStatus = "in_progress"
    created_at: str                             # ISO 8601
    updated_at: str

    @property
    def is_open(self) -> bool:
        return self.status != "completed"


class MergeResult(BaseModel):
    """Outcome of a completed merge."""
    intent_id: str
    source_name: str
    target_supplier_id: str
    target_name: str
    materials_migrated: int = 0
    materials_skipped: int = 0
    source_deleted: bool = False
