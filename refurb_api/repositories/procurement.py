from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.procurement import InwardBatch, PurchaseOrder
from .base import BaseRepository


class PurchaseOrderRepository(BaseRepository):
    """Repository for purchase orders; lines are loaded eagerly."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_po(self, po_id: UUID) -> Optional[PurchaseOrder]:
        return await self.get(PurchaseOrder, po_id)

    async def get_by_number(self, po_number: str) -> Optional[PurchaseOrder]:
        stmt = select(PurchaseOrder).where(PurchaseOrder.po_number == po_number)
        return await self.scalar_one_or_none(stmt)

    async def list_pos(self, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[PurchaseOrder]:
        stmt = select(PurchaseOrder)
        if status:
            stmt = stmt.where(PurchaseOrder.status == status)
        stmt = stmt.order_by(PurchaseOrder.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))


class InwardBatchRepository(BaseRepository):
    """Repository for inward batches."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_batch(self, batch_id: UUID, *, for_update: bool = False) -> Optional[InwardBatch]:
        return await self.get(InwardBatch, batch_id, for_update=for_update)

    async def list_batches(self, limit: int = 100, offset: int = 0) -> List[InwardBatch]:
        stmt = select(InwardBatch).order_by(InwardBatch.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def next_batch_code(self) -> str:
        return await self.next_code(InwardBatch.batch_code, "BATCH")
