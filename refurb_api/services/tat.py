from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.security import Role
from refurb_api.db.base import as_utc, utcnow
from refurb_api.db.models.enums import RepairJobStatus
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.tat import TatEntry, TatReport
from refurb_api.services.base import BaseService

logger = logging.getLogger(__name__)

TAT_STATUSES = (RepairJobStatus.UNDER_REPAIR.value, RepairJobStatus.AWAITING_QC.value)


def tat_due(started_at: datetime, days: int) -> datetime:
    return started_at + timedelta(days=days)


class TatMonitor(BaseService):
    """
    Turnaround-time watch over claimed repair jobs.

    A scan reports jobs due within the warning window and jobs already past
    due, and notifies the coordinator of each.
    """

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.jobs = RepairJobRepository(session)
        self.devices = DeviceRepository(session)

    # PUBLIC_INTERFACE
    async def scan(self, now: Optional[datetime] = None) -> TatReport:
        """Classify active jobs as approaching or breached relative to `now`."""
        now = as_utc(now) if now else utcnow()
        horizon = now + timedelta(hours=self.settings.TAT_WARNING_HOURS)
        report = TatReport(checked_at=now)

        async with self.unit_of_work():
            for job in await self.jobs.list_with_tat(TAT_STATUSES):
                due = as_utc(job.tat_due_date)
                if now < due <= horizon:
                    bucket, hours, days = report.approaching, math.ceil((due - now).total_seconds() / 3600), None
                elif due < now:
                    bucket, hours, days = report.breached, None, math.ceil((now - due).total_seconds() / 86400)
                else:
                    continue
                device = await self.devices.get_device(job.device_id)
                entry = TatEntry(
                    job_id=job.id,
                    job_code=job.job_code,
                    device_id=job.device_id,
                    barcode=device.barcode if device else None,
                    model=device.model if device else None,
                    status=job.status,
                    coordinator_id=job.l2_engineer_id,
                    tat_due_date=due,
                    hours_remaining=hours,
                    days_overdue=days,
                )
                bucket.append(entry)
                self._notify(entry)

        logger.info(
            "TAT scan: %d approaching, %d breached", len(report.approaching), len(report.breached)
        )
        return report

    def _notify(self, entry: TatEntry) -> None:
        if entry.days_overdue is not None:
            self.record_event(
                "tat.breached",
                f"TAT breached for {entry.barcode} ({entry.job_code}): {entry.days_overdue} day(s) overdue",
                device_id=entry.device_id,
                recipient_ids=[entry.coordinator_id],
                recipient_roles=[Role.WAREHOUSE_MANAGER.value],
                job_id=str(entry.job_id),
                days_overdue=entry.days_overdue,
            )
        else:
            self.record_event(
                "tat.approaching",
                f"TAT due in {entry.hours_remaining} hour(s) for {entry.barcode} ({entry.job_code})",
                device_id=entry.device_id,
                recipient_ids=[entry.coordinator_id],
                job_id=str(entry.job_id),
                hours_remaining=entry.hours_remaining,
            )
