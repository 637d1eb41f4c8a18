from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.enums import RackStage
from refurb_api.repositories.inventory import RackRepository
from refurb_api.schemas.racks import RackCreate, RackRead, StageUtilisation
from refurb_api.services.events import EventBus
from refurb_api.services.racks import RackPlacementEngine, RackService

router = APIRouter(prefix="/racks", tags=["Racks"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RackRead],
    summary="List racks",
    dependencies=[Depends(get_current_principal)],
)
async def list_racks(
    session: AsyncSession = Depends(get_session),
    stage: Optional[RackStage] = Query(None, description="Filter by stage"),
) -> List[RackRead]:
    rows = await RackRepository(session).list_racks(stage.value if stage else None)
    return [RackRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=RackRead,
    status_code=201,
    summary="Create rack",
)
async def create_rack(
    payload: RackCreate,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.WAREHOUSE_MANAGER)),
) -> RackRead:
    rack = await RackService(session, events=events).create_rack(payload, principal)
    return RackRead.model_validate(rack)


# PUBLIC_INTERFACE
@router.get(
    "/utilisation",
    response_model=List[StageUtilisation],
    summary="Rack utilisation per stage",
    dependencies=[Depends(get_current_principal)],
)
async def rack_utilisation(session: AsyncSession = Depends(get_session)) -> List[StageUtilisation]:
    rows = await RackPlacementEngine(session).utilisation()
    return [StageUtilisation(**row) for row in rows]
