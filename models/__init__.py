from .supplier import (
    PersistedSupplier, InferredSupplier, SupplierIdentity, SupplierStatus, SPECIALTY_OPTIONS,
)
from .material import Material
from .invoice import Invoice, INVOICE_STATUS_APPROVED
from .result import UsageStats, SupplierListEntry, MergeCandidate, MergeIntent, MergeResult

__all__ = [
    "PersistedSupplier", "InferredSupplier", "SupplierIdentity", "SupplierStatus",
    "SPECIALTY_OPTIONS",
    "Material",
    "Invoice", "INVOICE_STATUS_APPROVED",
    "UsageStats", "SupplierListEntry", "MergeCandidate", "MergeIntent", "MergeResult",
]
