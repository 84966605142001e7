from pydantic import BaseModel, Field
from typing import Annotated, Optional, List, Literal, Union


SupplierStatus = Literal["active", "suspended"]

SPECIALTY_OPTIONS = [
    "Verf", "Kwasten & Rollen", "Gereedschap", "Schuurmateriaal",
    "Primers & Grondverf", "Afplakmateriaal", "Beschermingsmiddelen",
    "Ladders & Steigers", "Spuitapparatuur", "Andere",
]


class PersistedSupplier(BaseModel):
    """
    A supplier record created by an operator and stored in the supplier table.
    It is the only identity a merge may target.
    """
    kind: Literal["persisted"] = "persisted"
    id: str
    name: str
    owner_email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    status: SupplierStatus = "active"
    company_id: Optional[str] = None
    created_at: Optional[str] = None      # ISO 8601

    @property
    def identity_key(self) -> str:
        return self.id

    @property
    def is_inferred(self) -> bool:
        return False


class InferredSupplier(BaseModel):
    """
    A supplier that only exists because a material or invoice names it.
    Rebuilt on every load; it has no id and no VAT number.
    """
    kind: Literal["inferred"] = "inferred"
    name: str

    @property
    def id(self) -> None:
        return None

    @property
    def vat_number(self) -> None:
        return None

    @property
    def identity_key(self) -> str:
        return self.name

    @property
    def is_inferred(self) -> bool:
        return True


SupplierIdentity = Annotated[
    Union[PersistedSupplier, InferredSupplier],
    Field(discriminator="kind"),
]
