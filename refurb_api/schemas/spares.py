from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SpareLine(BaseModel):
    """One parsed `CODE:QTY` token."""
    part_code: str
    quantity: int


class SparesValidationItem(BaseModel):
    part_code: str
    quantity: int
    available: Optional[int] = Field(None, description="Current stock, when the part exists")
    description: Optional[str] = None


class SparesValidation(BaseModel):
    """Outcome of checking a spares request against stock."""
    valid: bool
    items: List[SparesValidationItem] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class SparesText(BaseModel):
    spares: str = Field(..., description="e.g. 'RAM-001:2, SSD-002'")


class SparesIssueRequest(BaseModel):
    spares: Optional[str] = Field(None, description="Defaults to the job's outstanding request")


class SparePartRead(BaseModel):
    """Spare part read model with derived stock status."""
    id: UUID
    part_code: str
    description: Optional[str] = None
    current_stock: int
    min_stock: int
    max_stock: int
    stock_status: str = Field(..., description="LOW, NORMAL or OVERSTOCK")
    updated_at: datetime

    class Config:
        from_attributes = True
