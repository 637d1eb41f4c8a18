from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_event_bus, get_session, require_roles
from refurb_api.core.security import Role
from refurb_api.schemas.tat import TatReport
from refurb_api.services.events import EventBus
from refurb_api.services.tat import TatMonitor

router = APIRouter(prefix="/tat", tags=["TAT"])


# PUBLIC_INTERFACE
@router.post(
    "/scan",
    response_model=TatReport,
    summary="Run the TAT scan",
    description=(
        "Report repair jobs due within the warning window or already past due and notify their "
        "coordinators. Intended to be triggered hourly by a scheduler."
    ),
    dependencies=[Depends(require_roles(Role.WAREHOUSE_MANAGER))],
)
async def run_tat_scan(
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
) -> TatReport:
    return await TatMonitor(session, events=events).scan()
