from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from refurb_api.db.models.enums import ChecklistResult, Grade


class QCSubmission(BaseModel):
    """QC verdict. Passing needs a grade; failing needs remarks."""
    passed: bool = Field(..., description="True for pass, False for rework")
    grade: Optional[Grade] = Field(None, description="A or B (required on pass)")
    remarks: Optional[str] = Field(None, description="Required on fail")


class QCChecklistUpdate(BaseModel):
    status: ChecklistResult
    notes: Optional[str] = None


class QCOutcome(BaseModel):
    qc_record_id: UUID
    device_status: str
    repair_job_id: Optional[UUID] = None


class QCRecordRead(BaseModel):
    id: UUID
    device_id: UUID
    qc_eng_id: Optional[UUID] = None
    status: str
    grade: Optional[str] = None
    remarks: Optional[str] = None
    checklist_snapshot: Optional[List[dict]] = None
    created_at: datetime

    class Config:
        from_attributes = True
