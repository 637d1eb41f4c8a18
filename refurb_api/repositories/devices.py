from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.device import Device, OutwardRecord, StockMovement
from .base import BaseRepository


class DeviceRepository(BaseRepository):
    """Repository for devices and their stock movements."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_device(self, device_id: UUID, *, for_update: bool = False) -> Optional[Device]:
        return await self.get(Device, device_id, for_update=for_update)

    async def barcode_exists(self, barcode: str) -> bool:
        stmt = select(Device.id).where(Device.barcode == barcode)
        return (await self.scalar_one_or_none(stmt)) is not None

    async def list_devices(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        batch_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Device]:
        stmt = select(Device)
        if status:
            stmt = stmt.where(Device.status == status)
        if category:
            stmt = stmt.where(Device.category == category)
        if batch_id:
            stmt = stmt.where(Device.inward_batch_id == batch_id)
        stmt = stmt.order_by(Device.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_for_batch(self, batch_id: UUID) -> List[Device]:
        stmt = select(Device).where(Device.inward_batch_id == batch_id).order_by(Device.barcode)
        return list(await self.scalars(stmt))

    async def add_movement(
        self,
        device: Device,
        movement_type: str,
        *,
        user_id: Optional[UUID],
        reference: Optional[str] = None,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
    ) -> StockMovement:
        movement = StockMovement(
            device_id=device.id,
            movement_type=movement_type,
            user_id=user_id,
            reference=reference,
            from_location=from_location,
            to_location=to_location,
        )
        await self.add(movement)
        return movement

    async def list_movements(self, device_id: UUID) -> List[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.device_id == device_id)
            .order_by(StockMovement.created_at)
        )
        return list(await self.scalars(stmt))

    async def next_outward_code(self) -> str:
        return await self.next_code(OutwardRecord.outward_code, "OUT")
