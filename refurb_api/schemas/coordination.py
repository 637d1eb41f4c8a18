from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from refurb_api.db.models.enums import L3IssueType, PanelStatus, Track


class TrackPayload(BaseModel):
    """
    Details for dispatching or self-completing a parallel track.

    Only the fields relevant to the track are read:
      - DISPLAY: reported_issues
      - BATTERY: initial_capacity, target_capacity (final_capacity on self-complete)
      - L3: issue_type, description (resolution on self-complete)
      - PAINT: panels
    """
    reported_issues: Optional[str] = Field(None)
    initial_capacity: Optional[int] = Field(None, ge=0, le=100)
    target_capacity: Optional[int] = Field(None, ge=0, le=100)
    final_capacity: Optional[int] = Field(None, ge=0, le=100)
    issue_type: Optional[L3IssueType] = Field(None)
    description: Optional[str] = Field(None)
    resolution: Optional[str] = Field(None)
    panels: List[str] = Field(default_factory=list, description="Panel types for PAINT")
    notes: Optional[str] = Field(None)


class DispatchResult(BaseModel):
    track: Track
    sub_job_ids: List[UUID] = Field(default_factory=list)


class SparesRequest(BaseModel):
    """Mid-repair spares request."""
    spares: str = Field(..., min_length=1, description="e.g. 'RAM-001:2, SSD-002'")
    notes: Optional[str] = Field(None)


class SubJobComplete(BaseModel):
    """Specialist completion details."""
    notes: Optional[str] = Field(None)
    final_capacity: Optional[int] = Field(None, ge=0, le=100, description="BATTERY only")
    resolution: Optional[str] = Field(None, description="L3 only")


class PanelAdvance(BaseModel):
    target: PanelStatus = Field(..., description="IN_PAINT or READY_FOR_COLLECTION")


class RepairJobRead(BaseModel):
    """Repair job read model."""
    id: UUID
    job_code: str
    device_id: UUID
    inspection_eng_id: Optional[UUID] = None
    l2_engineer_id: Optional[UUID] = None
    status: str
    reported_issues: Optional[dict] = None
    spares_required: Optional[str] = None
    spares_issued: Optional[str] = None
    recommended_paint_panels: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    repair_start_date: Optional[datetime] = None
    repair_end_date: Optional[datetime] = None
    tat_due_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SubJobRead(BaseModel):
    """Specialist sub-job read model (display, battery or L3)."""
    id: UUID
    device_id: UUID
    repair_job_id: Optional[UUID] = None
    status: str
    assigned_to_id: Optional[UUID] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    completed_by_l2: bool = False
    reported_issues: Optional[str] = None
    initial_capacity: Optional[int] = None
    target_capacity: Optional[int] = None
    final_capacity: Optional[int] = None
    issue_type: Optional[str] = None
    description: Optional[str] = None
    resolution: Optional[str] = None

    class Config:
        from_attributes = True


class PaintPanelRead(BaseModel):
    id: UUID
    device_id: UUID
    repair_job_id: Optional[UUID] = None
    panel_type: str
    status: str
    assigned_to_id: Optional[UUID] = None
    completed_by_l2: bool = False

    class Config:
        from_attributes = True
