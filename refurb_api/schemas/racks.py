from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from refurb_api.db.models.enums import RackStage


class RackCreate(BaseModel):
    rack_code: str = Field(..., min_length=1)
    stage: RackStage
    capacity: int = Field(..., gt=0)
    description: Optional[str] = None
    is_active: bool = True


class RackRead(BaseModel):
    id: UUID
    rack_code: str
    stage: str
    capacity: int
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class StageUtilisation(BaseModel):
    stage: str
    racks: int
    used: int
    capacity: int
