from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import (
    InsufficientStock,
    NotFound,
    PartNotFound,
    PreconditionFailed,
    ValidationFailed,
)
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.enums import DeviceStatus, RepairJobStatus
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.inventory import SparePartRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.spares import SpareLine, SparesValidation, SparesValidationItem
from refurb_api.services.base import BaseService
from refurb_api.services.lifecycle import Lifecycle

logger = logging.getLogger(__name__)

_COLON_QTY = re.compile(r"^(.+?)\s*:\s*(-?\d+)$")
_TIMES_QTY = re.compile(r"^(.+?)\s+[xX](-?\d+)$")


# PUBLIC_INTERFACE
def parse_spares(text: Optional[str]) -> Tuple[List[SpareLine], List[str]]:
    """
    Parse a free-text spares list such as `RAM-001:2, SSD-002 x3, FAN-01`.

    Tokens are comma separated; each is `CODE:QTY`, `CODE xQTY` or a bare
    `CODE` (quantity 1). Codes compare case-insensitively and duplicates are
    summed. Returns the lines in first-seen order plus any parse errors.
    """
    merged: Dict[str, SpareLine] = {}
    errors: List[str] = []
    for raw in (text or "").split(","):
        token = raw.strip()
        if not token:
            continue
        match = _COLON_QTY.match(token) or _TIMES_QTY.match(token)
        if match:
            code, qty = match.group(1).strip(), int(match.group(2))
        else:
            code, qty = token, 1
        if qty <= 0:
            errors.append(f"Invalid quantity for {code}: {qty}")
            continue
        key = code.upper()
        if key in merged:
            merged[key].quantity += qty
        else:
            merged[key] = SpareLine(part_code=code, quantity=qty)
    return list(merged.values()), errors


def format_spares(lines: List[SpareLine]) -> str:
    return ", ".join(f"{line.part_code}:{line.quantity}" for line in lines)


def append_text(existing: Optional[str], addition: str, sep: str = ", ") -> str:
    return f"{existing}{sep}{addition}" if existing else addition


# PUBLIC_INTERFACE
def outstanding_spares(required: Optional[str], issued: Optional[str]) -> List[SpareLine]:
    """Parts requested on a job but not yet issued, in request order."""
    wanted, _ = parse_spares(required)
    given = {line.part_code.upper(): line.quantity for line in parse_spares(issued)[0]}
    owed: List[SpareLine] = []
    for line in wanted:
        remaining = line.quantity - given.get(line.part_code.upper(), 0)
        if remaining > 0:
            owed.append(SpareLine(part_code=line.part_code, quantity=remaining))
    return owed


class SparesService(BaseService):
    """
    Spare-parts inventory guard.

    Stock is only ever taken by a conditional UPDATE that refuses to go below
    zero, so concurrent issues of the last unit cannot both succeed.
    """

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.parts = SparePartRepository(session)
        self.jobs = RepairJobRepository(session)
        self.devices = DeviceRepository(session)
        self.lifecycle = Lifecycle(session)

    # PUBLIC_INTERFACE
    async def validate_spares(self, text: Optional[str]) -> SparesValidation:
        """Check a spares request against current stock without changing anything."""
        lines, errors = parse_spares(text)
        if not lines and not errors:
            return SparesValidation(valid=False, errors=["No spare parts specified"])

        found = await self.parts.find_by_codes([line.part_code for line in lines])
        items: List[SparesValidationItem] = []
        for line in lines:
            part = found.get(line.part_code.upper())
            if part is None:
                errors.append(f"Part {line.part_code} not found")
                items.append(SparesValidationItem(part_code=line.part_code, quantity=line.quantity))
                continue
            if part.current_stock < line.quantity:
                errors.append(
                    f"Insufficient stock for {part.part_code}: requested {line.quantity}, "
                    f"available {part.current_stock}"
                )
            items.append(
                SparesValidationItem(
                    part_code=part.part_code,
                    quantity=line.quantity,
                    available=part.current_stock,
                    description=part.description,
                )
            )
        return SparesValidation(valid=not errors, items=items, errors=errors)

    # PUBLIC_INTERFACE
    async def issue_spares(self, job_id: UUID, text: Optional[str], principal: Principal) -> SparesValidation:
        """
        Issue spares for a job waiting on them and release it for repair.

        All parts are taken or none: any shortfall rolls the whole issue back.
        """
        self.require_role(principal, Role.MIS_WAREHOUSE_EXECUTIVE, Role.WAREHOUSE_MANAGER)
        async with self.unit_of_work():
            job = await self.jobs.get_job(job_id, for_update=True)
            if job is None:
                raise NotFound(f"Repair job {job_id} not found")
            if job.status != RepairJobStatus.WAITING_FOR_SPARES.value:
                raise PreconditionFailed(
                    f"Job {job.job_code} is not waiting for spares (status {job.status})"
                )
            device = await self.devices.get_device(job.device_id, for_update=True)
            if device is None:
                raise NotFound(f"Device {job.device_id} not found")

            if text and text.strip():
                request_text = text
            else:
                owed = outstanding_spares(job.spares_required, job.spares_issued)
                if not owed:
                    raise ValidationFailed(f"Job {job.job_code} has no outstanding spares to issue")
                request_text = format_spares(owed)
            lines, parse_errors = parse_spares(request_text)
            if parse_errors:
                raise ValidationFailed("; ".join(parse_errors), details={"errors": parse_errors})

            check = await self.validate_spares(request_text)
            if not check.valid:
                if any(e.startswith("Part ") for e in check.errors):
                    raise PartNotFound(check.errors)
                raise InsufficientStock(check.errors)

            found = await self.parts.find_by_codes([line.part_code for line in lines], for_update=True)
            for line in lines:
                part = found[line.part_code.upper()]
                if not await self.parts.decrement_stock(part.id, line.quantity):
                    await self.session.refresh(part)
                    raise InsufficientStock(
                        [
                            f"Insufficient stock for {part.part_code}: requested {line.quantity}, "
                            f"available {part.current_stock}"
                        ]
                    )
                logger.info("Issued %s x %d for job %s", part.part_code, line.quantity, job.job_code)

            issued = [
                SpareLine(part_code=found[line.part_code.upper()].part_code, quantity=line.quantity)
                for line in lines
            ]
            job.spares_issued = append_text(job.spares_issued, format_spares(issued))
            await self.lifecycle.transition(device, DeviceStatus.READY_FOR_REPAIR, job)
            self.record_event(
                "spares.issued",
                f"Spares issued for {device.barcode} ({job.job_code})",
                actor=principal,
                device_id=device.id,
                recipient_ids=[job.l2_engineer_id] if job.l2_engineer_id else [],
                job_id=str(job.id),
            )
        for part in found.values():
            await self.session.refresh(part)
        return check

