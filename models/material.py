from pydantic import BaseModel
from typing import Optional


class Material(BaseModel):
    """
    A material (paint, brushes, tape, ...) as stored in the material table.
    supplier holds the supplier's display name, not its id.
    """
    id: str
    name: str
    supplier: Optional[str] = None
    unit: Optional[str] = None          # e.g. "l", "st", "rol"
    price: Optional[float] = None
    company_id: Optional[str] = None
