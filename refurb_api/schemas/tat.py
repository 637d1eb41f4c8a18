from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TatEntry(BaseModel):
    """One repair job close to or past its turnaround due date."""
    job_id: UUID
    job_code: str
    device_id: UUID
    barcode: Optional[str] = None
    model: Optional[str] = None
    status: str
    coordinator_id: Optional[UUID] = None
    tat_due_date: datetime
    hours_remaining: Optional[int] = Field(None, description="Set for approaching jobs")
    days_overdue: Optional[int] = Field(None, description="Set for breached jobs")


class TatReport(BaseModel):
    checked_at: datetime
    approaching: List[TatEntry] = Field(default_factory=list)
    breached: List[TatEntry] = Field(default_factory=list)
