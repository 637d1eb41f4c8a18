from __future__ import annotations

import logging
import secrets
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import BatchLocked, NotFound, PreconditionFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import DeviceStatus, InwardType, MovementType, Ownership
from refurb_api.db.models.procurement import InwardBatch, PurchaseOrder, PurchaseOrderItem
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.procurement import InwardBatchRepository, PurchaseOrderRepository
from refurb_api.schemas.devices import DeviceCreate, InwardBatchCreate, PurchaseOrderCreate
from refurb_api.services.base import BaseService
from refurb_api.services.racks import RackPlacementEngine

logger = logging.getLogger(__name__)

BARCODE_ATTEMPTS = 20

OWNERSHIP_FOR_INWARD = {
    InwardType.PURCHASE: Ownership.REFURB_STOCK,
    InwardType.RENTAL_RETURN: Ownership.RENTAL_RETURN,
    InwardType.CUSTOMER_RETURN: Ownership.CUSTOMER,
}


def barcode_candidate(category: str, brand: str) -> str:
    """`L-DEL-0042` style: category initial, first three brand letters, four digits."""
    prefix = (brand.strip().upper().replace(" ", "") or "XXX")[:3]
    return f"{category[0].upper()}-{prefix}-{secrets.randbelow(10000):04d}"


class IntakeService(BaseService):
    """Receives purchase orders, inward batches and the devices in them."""

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.orders = PurchaseOrderRepository(session)
        self.batches = InwardBatchRepository(session)
        self.devices = DeviceRepository(session)
        self.racks = RackPlacementEngine(session)

    # PUBLIC_INTERFACE
    async def create_purchase_order(self, data: PurchaseOrderCreate, principal: Principal) -> PurchaseOrder:
        """Create a PO with its expected lines, numbered from 1."""
        self.require_role(principal, Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)
        async with self.unit_of_work():
            if await self.orders.get_by_number(data.po_number) is not None:
                raise PreconditionFailed(f"Purchase order {data.po_number} already exists")
            po = PurchaseOrder(
                po_number=data.po_number,
                supplier=data.supplier,
                order_date=data.order_date,
                items=[
                    PurchaseOrderItem(
                        line_no=i,
                        category=item.category.value,
                        brand=item.brand.strip(),
                        model=item.model.strip(),
                        quantity=item.quantity,
                    )
                    for i, item in enumerate(data.items, start=1)
                ],
            )
            await self.orders.add(po)
            await self.orders.flush()
        return po

    # PUBLIC_INTERFACE
    async def create_batch(self, data: InwardBatchCreate, principal: Principal) -> InwardBatch:
        """Open an inward batch, optionally reconciled against a purchase order."""
        self.require_role(principal, Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)
        async with self.unit_of_work():
            if data.purchase_order_id is not None and await self.orders.get_po(data.purchase_order_id) is None:
                raise NotFound(f"Purchase order {data.purchase_order_id} not found")
            batch = InwardBatch(
                batch_code=await self.batches.next_batch_code(),
                inward_type=data.inward_type.value,
                supplier=data.supplier,
                customer=data.customer,
                purchase_order_id=data.purchase_order_id,
                created_by_id=principal.id,
            )
            await self.batches.add(batch)
            await self.batches.flush()
            logger.info("Opened inward batch %s (%s)", batch.batch_code, batch.inward_type)
        return batch

    # PUBLIC_INTERFACE
    async def add_device(self, batch_id: UUID, data: DeviceCreate, principal: Principal) -> Device:
        """
        Receive one device into a batch.

        The device starts RECEIVED, gets an INWARD stock movement and is put on
        a RECEIVED-stage rack when one has room. Locked batches take no devices.
        """
        self.require_role(principal, Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)
        async with self.unit_of_work():
            batch = await self.batches.get_batch(batch_id, for_update=True)
            if batch is None:
                raise NotFound(f"Inward batch {batch_id} not found")
            if batch.is_locked:
                raise BatchLocked(
                    f"Batch {batch.batch_code} is {batch.verification_status.lower()}; no devices can be added"
                )

            barcode = await self._barcode(data)
            ownership = data.ownership
            if "ownership" not in data.model_fields_set:
                ownership = OWNERSHIP_FOR_INWARD[InwardType(batch.inward_type)]

            device = Device(
                barcode=barcode,
                category=data.category.value,
                brand=data.brand.strip(),
                model=data.model.strip(),
                serial=data.serial,
                config=data.config,
                ownership=ownership.value,
                status=DeviceStatus.RECEIVED.value,
                inward_batch_id=batch.id,
            )
            await self.devices.add(device)
            await self.racks.place(device)
            await self.devices.add_movement(
                device,
                MovementType.INWARD.value,
                user_id=principal.id,
                reference=batch.batch_code,
                to_location=device.location,
            )
            self.record_event(
                "device.received",
                f"{device.barcode} received in batch {batch.batch_code}",
                actor=principal,
                device_id=device.id,
                batch_id=str(batch.id),
            )
        return device

    async def _barcode(self, data: DeviceCreate) -> str:
        if data.barcode:
            barcode = data.barcode.strip()
            if await self.devices.barcode_exists(barcode):
                raise PreconditionFailed(f"Barcode {barcode} is already in use")
            return barcode
        for _ in range(BARCODE_ATTEMPTS):
            candidate = barcode_candidate(data.category.value, data.brand)
            if not await self.devices.barcode_exists(candidate):
                return candidate
        raise PreconditionFailed(
            f"Could not generate a free barcode for {data.category.value} {data.brand}; supply one explicitly"
        )
