from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.enums import ChecklistStage
from refurb_api.db.models.quality import InspectionChecklistItem, QCRecord
from .base import BaseRepository


class ChecklistRepository(BaseRepository):
    """Repository for recorded checklist rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_for_device(self, device_id: UUID, stage: Optional[str] = None) -> List[InspectionChecklistItem]:
        stage_rank = case((InspectionChecklistItem.checked_at_stage == ChecklistStage.QC.value, 1), else_=0)
        stmt = select(InspectionChecklistItem).where(InspectionChecklistItem.device_id == device_id)
        if stage:
            stmt = stmt.where(InspectionChecklistItem.checked_at_stage == stage)
        stmt = stmt.order_by(
            InspectionChecklistItem.item_index, stage_rank, InspectionChecklistItem.checked_at
        )
        return list(await self.scalars(stmt))

    async def latest_per_index(self, device_id: UUID) -> Dict[int, InspectionChecklistItem]:
        """Latest row for each item index; QC re-checks supersede inspection rows."""
        latest: Dict[int, InspectionChecklistItem] = {}
        for row in await self.list_for_device(device_id):
            latest[row.item_index] = row
        return latest


class QCRecordRepository(BaseRepository):
    """Repository for QC records."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_for_device(self, device_id: UUID) -> List[QCRecord]:
        stmt = select(QCRecord).where(QCRecord.device_id == device_id).order_by(QCRecord.created_at)
        return list(await self.scalars(stmt))
