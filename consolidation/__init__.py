from .errors import (
    SupplierError, ValidationError, ConflictError, NotFoundError, PartialFailureError,
)
from .database import Database
from .synthesizer import synthesize_identities
from .duplicate_detector import bigram_similarity, detect_duplicates, suggest_merge_targets
from .usage_stats import compute_usage_stats
from .merger import SupplierMerger, merge_suppliers
from .supplier_service import SupplierService

__all__ = [
    "SupplierError", "ValidationError", "ConflictError", "NotFoundError", "PartialFailureError",
    "Database",
    "synthesize_identities",
    "bigram_similarity", "detect_duplicates", "suggest_merge_targets",
    "compute_usage_stats",
    "SupplierMerger", "merge_suppliers",
    "SupplierService",
]
