"""
Identity synthesis.

Materials and invoices name their supplier in free text. Every distinct name
that no persisted supplier carries becomes an InferredSupplier, so the
operator sees (and can merge or promote) suppliers nobody ever created.
"""
import logging
from typing import Iterable

from models.invoice import Invoice
from models.material import Material
from models.supplier import InferredSupplier, PersistedSupplier, SupplierIdentity

logger = logging.getLogger(__name__)


def referenced_supplier_names(
    materials: Iterable[Material],
    invoices: Iterable[Invoice],
) -> list[str]:
    """
    Return the distinct non-empty supplier names used by materials and
    invoices, in first-seen order (materials first).
    """
    names: dict[str, None] = {}
    for material in materials:
        if material.supplier:
            names.setdefault(material.supplier, None)
    for invoice in invoices:
        if invoice.supplier_name:
            names.setdefault(invoice.supplier_name, None)
    return list(names)


def synthesize_identities(
    suppliers: Iterable[PersistedSupplier],
    materials: Iterable[Material],
    invoices: Iterable[Invoice],
) -> list[SupplierIdentity]:
    """
    Return the persisted suppliers followed by one InferredSupplier per
    referenced name without an exact (case-sensitive) persisted match.

    Names that differ only in case or surrounding whitespace are NOT folded
    here; they surface as separate identities and are picked up by the
    duplicate detector.
    """
    persisted = list(suppliers)
    known = {s.name for s in persisted}

    inferred = [
        InferredSupplier(name=name)
        for name in referenced_supplier_names(materials, invoices)
        if name not in known
    ]
    logger.debug(
        "Synthesized %d inferred suppliers alongside %d persisted",
        len(inferred), len(persisted),
    )
    return [*persisted, *inferred]
