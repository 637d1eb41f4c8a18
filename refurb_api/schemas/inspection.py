from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from refurb_api.db.models.enums import ChecklistResult


class ChecklistItemDefinitionRead(BaseModel):
    """Catalog entry."""
    index: int
    text: str
    notes_placeholder: Optional[str] = None

    class Config:
        from_attributes = True


class ChecklistItemResult(BaseModel):
    """Result for one checklist item."""
    item_index: int = Field(..., ge=1)
    status: ChecklistResult = Field(..., description="PASS, FAIL or NOT_APPLICABLE")
    notes: Optional[str] = Field(None, description="Measured value or remark")


class InspectionSubmission(BaseModel):
    """Completed inspection for one device."""
    checklist: List[ChecklistItemResult] = Field(..., description="One result per catalog item")
    spares_required: Optional[str] = Field(None, description="e.g. 'RAM-001:2, SSD-002'")
    paint_panels: List[str] = Field(default_factory=list, description="Advisory panel list for the coordinator")
    cosmetic_issues: Optional[str] = Field(None)


class InspectionOutcome(BaseModel):
    next_status: str
    repair_job_id: Optional[UUID] = None


class ChecklistRowRead(BaseModel):
    """Recorded checklist row."""
    id: UUID
    item_index: int
    item_text: str
    status: str
    notes: Optional[str] = None
    checked_by_id: Optional[UUID] = None
    checked_at_stage: str
    checked_at: datetime

    class Config:
        from_attributes = True
