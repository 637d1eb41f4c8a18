"""
Device status state machine.

All status changes go through `Lifecycle.transition`, which checks the edge
against TRANSITIONS, keeps the repair job status in step and re-racks the
device.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import InvalidTransition
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import TERMINAL_STATUSES, DeviceStatus, RepairJobStatus
from refurb_api.db.models.repair import RepairJob
from refurb_api.services.racks import RackPlacementEngine

logger = logging.getLogger(__name__)

S = DeviceStatus

TRANSITIONS: Dict[DeviceStatus, FrozenSet[DeviceStatus]] = {
    S.RECEIVED: frozenset({S.PENDING_INSPECTION}),
    S.PENDING_INSPECTION: frozenset({S.READY_FOR_REPAIR, S.WAITING_FOR_SPARES, S.AWAITING_QC}),
    S.WAITING_FOR_SPARES: frozenset({S.READY_FOR_REPAIR, S.UNDER_REPAIR}),
    S.READY_FOR_REPAIR: frozenset({S.UNDER_REPAIR}),
    S.UNDER_REPAIR: frozenset({S.AWAITING_QC, S.WAITING_FOR_SPARES}),
    S.AWAITING_QC: frozenset({S.READY_FOR_STOCK, S.READY_FOR_REPAIR}),
    S.READY_FOR_STOCK: frozenset({S.STOCK_OUT_SOLD, S.STOCK_OUT_RENTAL}),
}

# Job status that follows from the device entering a status.
JOB_STATUS_FOR: Dict[DeviceStatus, RepairJobStatus] = {
    S.WAITING_FOR_SPARES: RepairJobStatus.WAITING_FOR_SPARES,
    S.READY_FOR_REPAIR: RepairJobStatus.READY_FOR_REPAIR,
    S.UNDER_REPAIR: RepairJobStatus.UNDER_REPAIR,
    S.AWAITING_QC: RepairJobStatus.AWAITING_QC,
    S.READY_FOR_STOCK: RepairJobStatus.REPAIR_CLOSED,
    S.SCRAPPED: RepairJobStatus.REPAIR_CLOSED,
}


def is_terminal(status: str | DeviceStatus) -> bool:
    return DeviceStatus(status) in TERMINAL_STATUSES


# PUBLIC_INTERFACE
def can_transition(current: str | DeviceStatus, target: str | DeviceStatus) -> bool:
    """True when `current -> target` is a legal edge. Any non-terminal status may be scrapped."""
    current, target = DeviceStatus(current), DeviceStatus(target)
    if target is S.SCRAPPED:
        return current not in TERMINAL_STATUSES
    return target in TRANSITIONS.get(current, frozenset())


class Lifecycle:
    """Applies legal status transitions to a device and its repair job."""

    def __init__(self, session: AsyncSession, racks: Optional[RackPlacementEngine] = None) -> None:
        self.session = session
        self.racks = racks or RackPlacementEngine(session)

    # PUBLIC_INTERFACE
    async def transition(
        self, device: Device, target: DeviceStatus, job: Optional[RepairJob] = None
    ) -> None:
        """
        Move `device` to `target`.

        Raises InvalidTransition for an illegal edge. When `job` is given its
        status is derived from the new device status. Rack placement runs last.
        """
        current = DeviceStatus(device.status)
        if not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        device.status = target.value
        if job is not None and target in JOB_STATUS_FOR:
            job.status = JOB_STATUS_FOR[target].value

        logger.info("Device %s: %s -> %s", device.barcode, current.value, target.value)
        await self.racks.place(device)
