from pydantic import BaseModel
from typing import Optional


INVOICE_STATUS_APPROVED = "approved"


class Invoice(BaseModel):
    """
    A supplier invoice from the read feed.
    Invoices keep the supplier text they arrived with; nothing here rewrites it.
    Dates are ISO 8601 strings (YYYY-MM-DD).
    """
    id: str
    supplier_name: Optional[str] = None
    supplier_vat: Optional[str] = None
    supplier_address: Optional[str] = None
    sender_email: Optional[str] = None
    status: Optional[str] = None            # e.g. "pending", "approved", "rejected"
    total_amount: Optional[float] = None
    invoice_date: Optional[str] = None      # YYYY-MM-DD
    company_id: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == INVOICE_STATUS_APPROVED
