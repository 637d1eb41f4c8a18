from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.repositories.inventory import SparePartRepository
from refurb_api.schemas.spares import SparePartRead, SparesIssueRequest, SparesText, SparesValidation
from refurb_api.services.events import EventBus
from refurb_api.services.spares import SparesService

router = APIRouter(prefix="/spares", tags=["Spares"])


# PUBLIC_INTERFACE
@router.get(
    "/parts",
    response_model=List[SparePartRead],
    summary="List spare parts",
    description="Spare parts by code with their stock status (LOW, NORMAL or OVERSTOCK).",
    dependencies=[Depends(get_current_principal)],
)
async def list_parts(
    session: AsyncSession = Depends(get_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[SparePartRead]:
    rows = await SparePartRepository(session).list_parts(limit=limit, offset=offset)
    return [SparePartRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/validate",
    response_model=SparesValidation,
    summary="Validate a spares request",
    description="Parse a spares list such as 'RAM-001:2, SSD-002' and check it against stock. Nothing changes.",
    dependencies=[Depends(get_current_principal)],
)
async def validate_spares(
    payload: SparesText,
    session: AsyncSession = Depends(get_session),
) -> SparesValidation:
    return await SparesService(session).validate_spares(payload.spares)


# PUBLIC_INTERFACE
@router.post(
    "/jobs/{job_id}/issue",
    response_model=SparesValidation,
    summary="Issue spares to a repair job",
    description=(
        "Take the parts out of stock and release the job for repair. Every part is issued or none is; "
        "a shortfall returns the full list of problems."
    ),
)
async def issue_spares(
    payload: SparesIssueRequest,
    job_id: UUID = Path(..., description="Repair job id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.MIS_WAREHOUSE_EXECUTIVE, Role.WAREHOUSE_MANAGER)),
) -> SparesValidation:
    return await SparesService(session, events=events).issue_spares(job_id, payload.spares, principal)
