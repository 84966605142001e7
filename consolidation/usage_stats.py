"""
Usage and revenue aggregation per supplier name.

Read-only: computes figures from already-loaded collections. Only invoices
with status 'approved' count towards revenue and invoice counts.
"""
import logging
from collections import Counter
from datetime import date, datetime
from typing import Iterable, Optional

from models.invoice import Invoice
from models.material import Material
from models.result import UsageStats
from models.supplier import SupplierIdentity

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD (or full ISO datetime) string; None if unparseable."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.debug("Ignoring unparseable invoice date: %r", value)
        return None


def _belongs_to(invoice: Invoice, identity: SupplierIdentity) -> bool:
    if invoice.supplier_name == identity.name:
        return True
    vat = (identity.vat_number or "").strip()
    return bool(vat) and (invoice.supplier_vat or "").strip() == vat


def compute_usage_stats(
    identities: Iterable[SupplierIdentity],
    materials: Iterable[Material],
    invoices: Iterable[Invoice],
    now: Optional[datetime] = None,
) -> dict[str, UsageStats]:
    """
    Return UsageStats keyed by supplier name.

    An invoice belongs to an identity when its supplier_name equals the
    identity's name, or when both carry the same non-empty VAT number.
    "Current month" is the calendar month of *now* (wall-clock by default).
    """
    now = now or datetime.now()
    approved = [inv for inv in invoices if inv.is_approved]
    material_counts = count_materials_by_name(materials)

    stats: dict[str, UsageStats] = {}
    for identity in identities:
        own = [inv for inv in approved if _belongs_to(inv, identity)]
        this_month = []
        for inv in own:
            inv_date = _parse_date(inv.invoice_date)
            if inv_date and inv_date.year == now.year and inv_date.month == now.month:
                this_month.append(inv)

        stats[identity.name] = UsageStats(
            total_approved_revenue=round(sum(inv.total_amount or 0.0 for inv in own), 2),
            current_month_approved_revenue=round(
                sum(inv.total_amount or 0.0 for inv in this_month), 2
            ),
            approved_invoice_count=len(own),
            material_count=material_counts.get(identity.name, 0),
        )
    return stats


def count_invoices_by_name(invoices: Iterable[Invoice]) -> dict[str, int]:
    """Number of invoices (any status) per supplier_name, for list ordering."""
    return dict(Counter(inv.supplier_name for inv in invoices if inv.supplier_name))


def count_materials_by_name(materials: Iterable[Material]) -> dict[str, int]:
    return dict(Counter(m.supplier for m in materials if m.supplier))
