"""
Pydantic models for dashboard API requests.
"""
from pydantic import BaseModel, Field
from typing import Optional, List


class SupplierCreate(BaseModel):
    name: str = ""
    owner_email: str = ""
    phone_number: Optional[str] = None
    address: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    status: str = "active"   # active | suspended


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    owner_email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    specialties: Optional[List[str]] = None
    status: Optional[str] = None


class SupplierPromote(BaseModel):
    name: str                # the inferred supplier's name
    owner_email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)


class MergeRequest(BaseModel):
    source_name: str
    source_supplier_id: Optional[str] = None   # set when the source has a profile
    target_supplier_id: str
