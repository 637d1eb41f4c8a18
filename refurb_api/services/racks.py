from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import PreconditionFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import DeviceStatus, RackStage
from refurb_api.db.models.inventory import Rack
from refurb_api.repositories.inventory import RackRepository
from refurb_api.schemas.racks import RackCreate
from refurb_api.services.base import BaseService

logger = logging.getLogger(__name__)

STAGE_FOR_STATUS: Dict[DeviceStatus, RackStage] = {
    DeviceStatus.RECEIVED: RackStage.RECEIVED,
    DeviceStatus.PENDING_INSPECTION: RackStage.RECEIVED,
    DeviceStatus.WAITING_FOR_SPARES: RackStage.WAITING_FOR_REPAIR,
    DeviceStatus.READY_FOR_REPAIR: RackStage.WAITING_FOR_REPAIR,
    DeviceStatus.UNDER_REPAIR: RackStage.UNDER_REPAIR,
    DeviceStatus.AWAITING_QC: RackStage.AWAITING_QC,
    DeviceStatus.READY_FOR_STOCK: RackStage.READY_FOR_DISPATCH,
}


# PUBLIC_INTERFACE
def stage_for_status(status: str | DeviceStatus) -> Optional[RackStage]:
    """Rack stage a device in `status` belongs on; None for terminal statuses."""
    return STAGE_FOR_STATUS.get(DeviceStatus(status))


class RackPlacementEngine:
    """
    Keeps a device on a rack matching its current stage.

    Placement is soft: when every rack of the stage is full the device is left
    unplaced and a warning is logged; the calling operation still succeeds.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = RackRepository(session)

    # PUBLIC_INTERFACE
    async def place(self, device: Device) -> Optional[Rack]:
        """Move the device to the first active rack of its stage with free space."""
        stage = stage_for_status(device.status)
        if stage is None:
            self.evict(device)
            return None

        # Pending rack changes must be visible to the occupancy count.
        await self.session.flush()
        racks = await self.repo.active_for_stage(stage.value)
        for rack in racks:
            if rack.id == device.rack_id:
                return rack

        counts = await self.repo.occupancy([r.id for r in racks])
        for rack in racks:
            if counts.get(rack.id, 0) < rack.capacity:
                device.rack_id = rack.id
                device.location = rack.rack_code
                await self.session.flush()
                return rack

        logger.warning(
            "No rack capacity for stage=%s; device %s left unplaced", stage.value, device.barcode
        )
        device.rack_id = None
        device.location = None
        return None

    # PUBLIC_INTERFACE
    def evict(self, device: Device) -> None:
        """Clear the rack link and location (device left the warehouse)."""
        device.rack_id = None
        device.location = None

    # PUBLIC_INTERFACE
    async def utilisation(self) -> List[dict]:
        """Per-stage rack count, used slots and capacity."""
        racks = await self.repo.list_racks()
        active = [r for r in racks if r.is_active]
        counts = await self.repo.occupancy([r.id for r in active])
        summary: List[dict] = []
        for stage in RackStage:
            stage_racks = [r for r in active if r.stage == stage.value]
            summary.append(
                {
                    "stage": stage.value,
                    "racks": len(stage_racks),
                    "used": sum(counts.get(r.id, 0) for r in stage_racks),
                    "capacity": sum(r.capacity for r in stage_racks),
                }
            )
        return summary


class RackService(BaseService):
    """Rack administration."""

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.repo = RackRepository(session)

    # PUBLIC_INTERFACE
    async def create_rack(self, data: RackCreate, principal: Principal) -> Rack:
        self.require_role(principal, Role.WAREHOUSE_MANAGER)
        async with self.unit_of_work():
            if await self.repo.get_by_code(data.rack_code) is not None:
                raise PreconditionFailed(f"Rack {data.rack_code} already exists")
            rack = Rack(
                rack_code=data.rack_code.strip(),
                stage=data.stage.value,
                capacity=data.capacity,
                description=data.description,
                is_active=data.is_active,
            )
            await self.repo.add(rack)
            await self.repo.flush()
        return rack
