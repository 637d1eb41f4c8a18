from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.device import Device
from refurb_api.db.models.inventory import Rack, SparePart
from .base import BaseRepository


class SparePartRepository(BaseRepository):
    """Repository for spare part stock lines."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_parts(self, limit: int = 100, offset: int = 0) -> List[SparePart]:
        stmt = select(SparePart).order_by(SparePart.part_code).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def find_by_codes(self, codes: Sequence[str], *, for_update: bool = False) -> Dict[str, SparePart]:
        """Return parts keyed by upper-cased part code; lookup is case-insensitive."""
        if not codes:
            return {}
        wanted = [c.upper() for c in codes]
        stmt = select(SparePart).where(func.upper(SparePart.part_code).in_(wanted))
        if for_update:
            stmt = stmt.with_for_update()
        return {p.part_code.upper(): p for p in await self.scalars(stmt)}

    async def decrement_stock(self, part_id: UUID, quantity: int) -> bool:
        """
        Atomically take `quantity` units; returns False if stock would go negative.
        """
        stmt = (
            update(SparePart)
            .where(SparePart.id == part_id, SparePart.current_stock >= quantity)
            .values(current_stock=SparePart.current_stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.execute(stmt)
        return result.rowcount == 1


class RackRepository(BaseRepository):
    """Repository for racks and their occupancy."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_racks(self, stage: Optional[str] = None) -> List[Rack]:
        stmt = select(Rack)
        if stage:
            stmt = stmt.where(Rack.stage == stage)
        return list(await self.scalars(stmt.order_by(Rack.rack_code)))

    async def get_by_code(self, rack_code: str) -> Optional[Rack]:
        stmt = select(Rack).where(Rack.rack_code == rack_code.strip())
        return await self.scalar_one_or_none(stmt)

    async def active_for_stage(self, stage: str) -> List[Rack]:
        stmt = (
            select(Rack)
            .where(Rack.stage == stage, Rack.is_active.is_(True))
            .order_by(Rack.rack_code)
        )
        return list(await self.scalars(stmt))

    async def occupancy(self, rack_ids: Sequence[UUID]) -> Dict[UUID, int]:
        """Count devices currently linked to each rack."""
        if not rack_ids:
            return {}
        stmt = (
            select(Device.rack_id, func.count(Device.id))
            .where(Device.rack_id.in_(list(rack_ids)))
            .group_by(Device.rack_id)
        )
        rows = (await self.execute(stmt)).all()
        return {rack_id: int(count) for rack_id, count in rows}
