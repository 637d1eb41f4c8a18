from __future__ import annotations

import logging
from collections import Counter
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import NotFound, PreconditionFailed, ValidationFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.device import Device, OutwardRecord
from refurb_api.db.models.enums import DeviceStatus, MovementType, OutwardType
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.devices import OutwardCreate
from refurb_api.services.base import BaseService
from refurb_api.services.lifecycle import Lifecycle, is_terminal

logger = logging.getLogger(__name__)

OUTWARD_TARGET = {
    OutwardType.SALES: (DeviceStatus.STOCK_OUT_SOLD, MovementType.SALES_OUTWARD),
    OutwardType.RENTAL: (DeviceStatus.STOCK_OUT_RENTAL, MovementType.RENTAL_OUTWARD),
}


class OutwardService(BaseService):
    """Devices leaving the warehouse: dispatch to customers and scrapping."""

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.devices = DeviceRepository(session)
        self.jobs = RepairJobRepository(session)
        self.lifecycle = Lifecycle(session)

    # PUBLIC_INTERFACE
    async def dispatch(self, data: OutwardCreate, principal: Principal) -> OutwardRecord:
        """Dispatch READY_FOR_STOCK devices as a sale or rental; all or none."""
        self.require_role(principal, Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)
        repeated = sorted(str(i) for i, n in Counter(data.device_ids).items() if n > 1)
        if repeated:
            raise ValidationFailed("Each device can only be dispatched once", details={"duplicates": repeated})
        target, movement_type = OUTWARD_TARGET[data.outward_type]
        async with self.unit_of_work():
            devices: List[Device] = []
            for device_id in data.device_ids:
                device = await self.devices.get_device(device_id, for_update=True)
                if device is None:
                    raise NotFound(f"Device {device_id} not found")
                devices.append(device)
            not_ready = [d.barcode for d in devices if d.status != DeviceStatus.READY_FOR_STOCK.value]
            if not_ready:
                raise PreconditionFailed(
                    "Devices not ready for stock: " + ", ".join(not_ready),
                    details={"barcodes": not_ready},
                )

            record = OutwardRecord(
                outward_code=await self.devices.next_outward_code(),
                outward_type=data.outward_type.value,
                customer=data.customer.strip(),
                reference=data.reference.strip(),
                shipping_details=data.shipping_details,
                packed_by_id=data.packed_by_id,
                checked_by_id=data.checked_by_id,
                dispatched_by_id=principal.id,
                device_ids=[str(d.id) for d in devices],
            )
            await self.devices.add(record)
            for device in devices:
                from_location = device.location
                await self.lifecycle.transition(device, target)
                await self.devices.add_movement(
                    device,
                    movement_type.value,
                    user_id=principal.id,
                    reference=record.outward_code,
                    from_location=from_location,
                    to_location=record.customer,
                )
            await self.devices.flush()
            self.record_event(
                "devices.dispatched",
                f"{record.outward_code}: {len(devices)} device(s) to {record.customer}",
                actor=principal,
                outward_id=str(record.id),
                barcodes=[d.barcode for d in devices],
            )
            logger.info("Dispatched %d device(s) under %s", len(devices), record.outward_code)
        return record

    # PUBLIC_INTERFACE
    async def scrap(self, device_id: UUID, reason: str, principal: Principal) -> Device:
        """Scrap a device at any non-terminal stage, closing its open repair job."""
        self.require_role(principal, Role.WAREHOUSE_MANAGER)
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationFailed("A scrap reason is required")
        async with self.unit_of_work():
            device = await self.devices.get_device(device_id, for_update=True)
            if device is None:
                raise NotFound(f"Device {device_id} not found")
            if is_terminal(device.status):
                raise PreconditionFailed(f"Device {device.barcode} has already left stock ({device.status})")
            job = await self.jobs.active_for_device(device.id, for_update=True)
            from_location = device.location
            await self.lifecycle.transition(device, DeviceStatus.SCRAPPED, job)
            if job is not None:
                job.notes = f"{job.notes}\n\nSCRAPPED: {cleaned}" if job.notes else f"SCRAPPED: {cleaned}"
            await self.devices.add_movement(
                device,
                MovementType.SCRAP.value,
                user_id=principal.id,
                reference=cleaned,
                from_location=from_location,
            )
            self.record_event(
                "device.scrapped",
                f"{device.barcode} scrapped: {cleaned}",
                actor=principal,
                device_id=device.id,
            )
        return device
