from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Type, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.enums import PanelStatus, RepairJobStatus, SubJobStatus
from refurb_api.db.models.repair import (
    BatteryBoostJob,
    DisplayRepairJob,
    L3RepairJob,
    PaintPanel,
    RepairJob,
)
from .base import BaseRepository

SubJob = Union[DisplayRepairJob, BatteryBoostJob, L3RepairJob]

OUTSTANDING_SUB_JOB = (SubJobStatus.PENDING.value, SubJobStatus.IN_PROGRESS.value)
OUTSTANDING_PANEL = (
    PanelStatus.AWAITING_PAINT.value,
    PanelStatus.IN_PAINT.value,
    PanelStatus.READY_FOR_COLLECTION.value,
)


class RepairJobRepository(BaseRepository):
    """Repository for repair jobs (the coordinator-level work order)."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_job(self, job_id: UUID, *, for_update: bool = False) -> Optional[RepairJob]:
        return await self.get(RepairJob, job_id, for_update=for_update)

    async def latest_for_device(self, device_id: UUID, *, for_update: bool = False) -> Optional[RepairJob]:
        stmt = (
            select(RepairJob)
            .where(RepairJob.device_id == device_id)
            .order_by(RepairJob.created_at.desc(), RepairJob.job_code.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await self.scalar_one_or_none(stmt)

    async def active_for_device(self, device_id: UUID, *, for_update: bool = False) -> Optional[RepairJob]:
        """Return the device's job that is not yet REPAIR_CLOSED, if any."""
        stmt = (
            select(RepairJob)
            .where(
                RepairJob.device_id == device_id,
                RepairJob.status != RepairJobStatus.REPAIR_CLOSED.value,
            )
            .order_by(RepairJob.created_at.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await self.scalar_one_or_none(stmt)

    async def claim(self, job_id: UUID, engineer_id: UUID, *, started_at: datetime, tat_due: datetime) -> bool:
        """
        Set the coordinator only if none is set yet.

        Returns False when another engineer already holds the job.
        """
        stmt = (
            update(RepairJob)
            .where(RepairJob.id == job_id, RepairJob.l2_engineer_id.is_(None))
            .values(
                l2_engineer_id=engineer_id,
                status=RepairJobStatus.UNDER_REPAIR.value,
                repair_start_date=started_at,
                tat_due_date=tat_due,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.execute(stmt)
        return result.rowcount == 1

    async def list_jobs(
        self,
        *,
        status: Optional[str] = None,
        coordinator_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RepairJob]:
        stmt = select(RepairJob)
        if status:
            stmt = stmt.where(RepairJob.status == status)
        if coordinator_id:
            stmt = stmt.where(RepairJob.l2_engineer_id == coordinator_id)
        stmt = stmt.order_by(RepairJob.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_with_tat(self, statuses: Sequence[str]) -> List[RepairJob]:
        stmt = (
            select(RepairJob)
            .where(RepairJob.status.in_(list(statuses)), RepairJob.tat_due_date.is_not(None))
            .order_by(RepairJob.tat_due_date)
        )
        return list(await self.scalars(stmt))

    async def next_job_code(self) -> str:
        return await self.next_code(RepairJob.job_code, "JOB")


class SubJobRepository(BaseRepository):
    """Repository for specialist sub-jobs and paint panels."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_sub_job(self, model: Type[SubJob], sub_job_id: UUID, *, for_update: bool = False):
        return await self.get(model, sub_job_id, for_update=for_update)

    async def latest(self, model: Type[SubJob], device_id: UUID) -> Optional[SubJob]:
        stmt = (
            select(model)
            .where(model.device_id == device_id, model.status != SubJobStatus.CANCELLED.value)
            .order_by(model.created_at.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def outstanding(self, model: Type[SubJob], device_id: UUID) -> List[SubJob]:
        stmt = select(model).where(model.device_id == device_id, model.status.in_(OUTSTANDING_SUB_JOB))
        return list(await self.scalars(stmt))

    async def list_queue(self, model: Type[SubJob], status: Optional[str] = None) -> List[SubJob]:
        stmt = select(model)
        if status:
            stmt = stmt.where(model.status == status)
        else:
            stmt = stmt.where(model.status.in_(OUTSTANDING_SUB_JOB))
        return list(await self.scalars(stmt.order_by(model.created_at)))

    async def get_panel(self, panel_id: UUID, *, for_update: bool = False) -> Optional[PaintPanel]:
        return await self.get(PaintPanel, panel_id, for_update=for_update)

    async def panels_for_device(self, device_id: UUID, *, include_cancelled: bool = False) -> List[PaintPanel]:
        stmt = select(PaintPanel).where(PaintPanel.device_id == device_id)
        if not include_cancelled:
            stmt = stmt.where(PaintPanel.status != PanelStatus.CANCELLED.value)
        return list(await self.scalars(stmt.order_by(PaintPanel.created_at)))

    async def list_panels(self, status: Optional[str] = None) -> List[PaintPanel]:
        stmt = select(PaintPanel)
        if status:
            stmt = stmt.where(PaintPanel.status == status)
        else:
            stmt = stmt.where(PaintPanel.status.in_(OUTSTANDING_PANEL))
        return list(await self.scalars(stmt.order_by(PaintPanel.created_at)))
