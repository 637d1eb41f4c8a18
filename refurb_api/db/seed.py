"""
Database seeding utilities for minimal reference data.

Seeds:
- One rack per workflow stage (RCV-01, WFR-01, UR-01, QC-01, DSP-01)
- Sample spare parts (RAM-001, SSD-002, BAT-003, KBD-004, LCD-005)

Re-running is safe; existing rack and part codes are left untouched.

Usage:
  python -m refurb_api.db.run_migrations upgrade head
  python -m refurb_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.db.models.enums import RackStage
from refurb_api.db.models.inventory import Rack, SparePart
from refurb_api.db.session import get_async_session

logger = logging.getLogger(__name__)

RACKS: List[Tuple[str, RackStage, int, str]] = [
    ("RCV-01", RackStage.RECEIVED, 50, "Inward receiving bay"),
    ("WFR-01", RackStage.WAITING_FOR_REPAIR, 40, "Inspected, waiting for a coordinator"),
    ("UR-01", RackStage.UNDER_REPAIR, 30, "L2 repair benches"),
    ("QC-01", RackStage.AWAITING_QC, 20, "Quality check queue"),
    ("DSP-01", RackStage.READY_FOR_DISPATCH, 60, "Finished stock"),
]

SPARE_PARTS: List[Tuple[str, str, int, int, int]] = [
    # code, description, current, min, max
    ("RAM-001", "8GB DDR4 SO-DIMM", 25, 10, 100),
    ("SSD-002", "256GB NVMe SSD", 15, 5, 50),
    ("BAT-003", "Laptop battery 3-cell", 8, 5, 30),
    ("KBD-004", "Laptop keyboard (US)", 12, 4, 40),
    ("LCD-005", "14in FHD LCD panel", 6, 2, 20),
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with minimal reference data.

    This function:
      - Creates a rack for every stage that device placement looks up
      - Stocks a handful of common spare parts
    """
    async for session in get_async_session():
        racks = await _seed_racks(session)
        parts = await _seed_spare_parts(session)
        await session.commit()
        logger.info("Seeded %d racks and %d spare parts", racks, parts)


async def _seed_racks(session: AsyncSession) -> int:
    existing = set((await session.execute(select(Rack.rack_code))).scalars())
    created = 0
    for code, stage, capacity, description in RACKS:
        if code in existing:
            continue
        session.add(Rack(rack_code=code, stage=stage.value, capacity=capacity, description=description))
        created += 1
    return created


async def _seed_spare_parts(session: AsyncSession) -> int:
    existing = set((await session.execute(select(SparePart.part_code))).scalars())
    created = 0
    for code, description, current, min_stock, max_stock in SPARE_PARTS:
        if code in existing:
            continue
        session.add(
            SparePart(
                part_code=code,
                description=description,
                current_stock=current,
                min_stock=min_stock,
                max_stock=max_stock,
            )
        )
        created += 1
    return created


if __name__ == "__main__":
    asyncio.run(seed_all())
