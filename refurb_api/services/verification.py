from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import BatchLocked, NotFound, PreconditionFailed, ValidationFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.base import utcnow
from refurb_api.db.models.enums import VerificationStatus
from refurb_api.db.models.procurement import InwardBatch
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.procurement import InwardBatchRepository, PurchaseOrderRepository
from refurb_api.schemas.verification import (
    ExpectedLine,
    MissingLine,
    MissingUnit,
    ReceivedDevice,
    VerificationResult,
)
from refurb_api.services.base import BaseService

logger = logging.getLogger(__name__)

MIN_OVERRIDE_REASON = 10

_Key = Tuple[str, str, str]


def _key(category: str, brand: str, model: str) -> _Key:
    return (category.strip().lower(), brand.strip().lower(), model.strip().lower())


# PUBLIC_INTERFACE
def match_shipment(
    received: Sequence[ReceivedDevice],
    expected: Sequence[ExpectedLine],
    extra_tolerance: int = 0,
) -> VerificationResult:
    """
    Reconcile received devices against expected PO lines.

    Each expected line greedily consumes up to its quantity of received
    devices with the same (category, brand, model), compared trimmed and
    case-insensitively. Each unconsumed expected unit is one `missing`
    entry, so matched + missing always equals the expected total; short
    lines are also summarised in `shortfalls`. Unconsumed devices are extra.
    The shipment is VERIFIED only when nothing is missing and the extras
    stay within `extra_tolerance`.
    """
    pool: Dict[_Key, List[ReceivedDevice]] = OrderedDict()
    for device in received:
        pool.setdefault(_key(device.category, device.brand, device.model), []).append(device)

    matched: List[ReceivedDevice] = []
    shortfalls: List[MissingLine] = []
    total_expected = 0
    for line in expected:
        total_expected += line.quantity
        candidates = pool.get(_key(line.category, line.brand, line.model), [])
        taken = candidates[: line.quantity]
        del candidates[: line.quantity]
        matched.extend(taken)
        if len(taken) < line.quantity:
            shortfalls.append(
                MissingLine(
                    category=line.category,
                    brand=line.brand,
                    model=line.model,
                    expected=line.quantity,
                    received=len(taken),
                    missing=line.quantity - len(taken),
                )
            )

    missing = [
        MissingUnit(category=s.category, brand=s.brand, model=s.model, expected=s.expected, received=s.received)
        for s in shortfalls
        for _ in range(s.missing)
    ]
    leftover = {id(d) for devices in pool.values() for d in devices}
    extra = [d for d in received if id(d) in leftover]

    discrepancies = [f"Missing {m.missing} x {m.category} {m.brand} {m.model}" for m in shortfalls]
    discrepancies += [f"Unexpected {d.category} {d.brand} {d.model} (barcode {d.barcode})" for d in extra]

    percentage = round(len(matched) / total_expected * 100, 1) if total_expected else 0.0
    verified = total_expected > 0 and not missing and len(extra) <= extra_tolerance
    return VerificationResult(
        status=(VerificationStatus.VERIFIED if verified else VerificationStatus.PARTIAL).value,
        match_percentage=percentage,
        total_expected=total_expected,
        matched_count=len(matched),
        matched=matched,
        missing=missing,
        shortfalls=shortfalls,
        extra=extra,
        discrepancies=discrepancies,
    )


class VerificationService(BaseService):
    """Reconciles inward batches against their purchase orders."""

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.batches = InwardBatchRepository(session)
        self.orders = PurchaseOrderRepository(session)
        self.devices = DeviceRepository(session)

    # PUBLIC_INTERFACE
    async def verify_shipment(self, batch_id: UUID, principal: Principal) -> VerificationResult:
        """Match the batch's devices against its PO and store the outcome on the batch."""
        self.require_role(principal, Role.MIS_WAREHOUSE_EXECUTIVE, Role.WAREHOUSE_MANAGER)
        async with self.unit_of_work():
            batch = await self._batch(batch_id)
            if batch.is_locked:
                raise BatchLocked(
                    f"Batch {batch.batch_code} is already {batch.verification_status.lower()}"
                )
            if batch.purchase_order_id is None:
                raise PreconditionFailed(f"Batch {batch.batch_code} is not linked to a purchase order")
            po = await self.orders.get_po(batch.purchase_order_id)
            if po is None or not po.items:
                raise PreconditionFailed(f"Batch {batch.batch_code} has no expected items to verify against")

            devices = await self.devices.list_for_batch(batch.id)
            result = match_shipment(
                [ReceivedDevice(barcode=d.barcode, category=d.category, brand=d.brand, model=d.model) for d in devices],
                [ExpectedLine(category=i.category, brand=i.brand, model=i.model, quantity=i.quantity) for i in po.items],
                extra_tolerance=self.settings.VERIFICATION_EXTRA_TOLERANCE,
            )

            batch.verification_status = result.status
            batch.verification_result = result.model_dump(mode="json")
            batch.verified_at = utcnow()
            batch.verified_by_id = principal.id
            self.record_event(
                "batch.verified",
                f"Batch {batch.batch_code} verification: {result.status} ({result.match_percentage}%)",
                actor=principal,
                batch_id=str(batch.id),
                discrepancies=result.discrepancies,
            )
            logger.info(
                "Batch %s verified as %s with %.1f%% match",
                batch.batch_code,
                result.status,
                result.match_percentage,
            )
        return result

    # PUBLIC_INTERFACE
    async def override_verification(self, batch_id: UUID, reason: str, principal: Principal) -> InwardBatch:
        """Skip matching for a batch; managers only, with a recorded reason."""
        self.require_role(principal, Role.WAREHOUSE_MANAGER)
        cleaned = (reason or "").strip()
        if len(cleaned) < MIN_OVERRIDE_REASON:
            raise ValidationFailed(
                f"Override reason must be at least {MIN_OVERRIDE_REASON} characters",
                details={"length": len(cleaned)},
            )
        async with self.unit_of_work():
            batch = await self._batch(batch_id)
            if batch.is_locked:
                raise BatchLocked(
                    f"Batch {batch.batch_code} is already {batch.verification_status.lower()}"
                )
            batch.verification_status = VerificationStatus.SKIPPED.value
            batch.override_reason = cleaned
            batch.verified_at = utcnow()
            batch.verified_by_id = principal.id
            self.record_event(
                "batch.verification_skipped",
                f"Verification skipped for batch {batch.batch_code}: {cleaned}",
                actor=principal,
                batch_id=str(batch.id),
            )
            logger.warning("Verification of batch %s overridden: %s", batch.batch_code, cleaned)
        return batch

    async def _batch(self, batch_id: UUID) -> InwardBatch:
        batch = await self.batches.get_batch(batch_id, for_update=True)
        if batch is None:
            raise NotFound(f"Inward batch {batch_id} not found")
        return batch
