import os

os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator, Callable
from typing import List, Optional
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import refurb_api.db.models  # noqa: F401
from refurb_api.api.main import app
from refurb_api.core.deps import get_event_bus, get_session
from refurb_api.core.security import Principal, Role, create_access_token
from refurb_api.db.base import Base
from refurb_api.db.models.enums import (
    ChecklistResult,
    DeviceCategory,
    InwardType,
    RackStage,
    Track,
)
from refurb_api.db.models.inventory import Rack, SparePart
from refurb_api.schemas.coordination import TrackPayload
from refurb_api.schemas.devices import DeviceCreate, InwardBatchCreate
from refurb_api.schemas.inspection import ChecklistItemResult, InspectionSubmission
from refurb_api.services.coordination import CoordinationService
from refurb_api.services.events import EventBus
from refurb_api.services.inspection import InspectionService
from refurb_api.services.intake import IntakeService


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        yield session


@pytest.fixture
def bus() -> EventBus:
    """Bare bus with no handlers; tests inspect queued events with drain()."""
    return EventBus()


@pytest.fixture
def principal() -> Callable[..., Principal]:
    def _make(*roles: Role) -> Principal:
        return Principal(id=uuid4(), name="tester", roles=frozenset(r.value for r in roles))

    return _make


@pytest.fixture
def warehouse(principal) -> Principal:
    return principal(Role.WAREHOUSE_MANAGER)


@pytest.fixture
def inspector(principal) -> Principal:
    return principal(Role.INSPECTION_ENGINEER)


@pytest.fixture
def l2(principal) -> Principal:
    return principal(Role.L2_ENGINEER)


@pytest.fixture
def qc_engineer(principal) -> Principal:
    return principal(Role.QC_ENGINEER)


@pytest.fixture
async def racks(session) -> List[Rack]:
    rows = [
        Rack(rack_code=f"{stage.value[:3]}-01", stage=stage.value, capacity=10)
        for stage in RackStage
    ]
    session.add_all(rows)
    await session.commit()
    return rows


@pytest.fixture
async def spare_parts(session) -> List[SparePart]:
    rows = [
        SparePart(part_code="RAM-001", description="8GB DDR4", current_stock=1, min_stock=2, max_stock=20),
        SparePart(part_code="SSD-002", description="256GB NVMe", current_stock=5, min_stock=1, max_stock=20),
    ]
    session.add_all(rows)
    await session.commit()
    return rows


def checklist_results(
    category: DeviceCategory = DeviceCategory.LAPTOP,
    failures: Optional[dict] = None,
) -> List[ChecklistItemResult]:
    """All 20 items passing except `failures` ({index: notes})."""
    failures = failures or {}
    return [
        ChecklistItemResult(
            item_index=i,
            status=ChecklistResult.FAIL if i in failures else ChecklistResult.PASS,
            notes=failures.get(i),
        )
        for i in range(1, 21)
    ]


class Workflow:
    """Drives devices through the services so tests can start from any stage."""

    def __init__(self, session: AsyncSession, bus: EventBus, principal) -> None:
        self.session = session
        self.bus = bus
        self.warehouse = principal(Role.WAREHOUSE_MANAGER)
        self.inspector = principal(Role.INSPECTION_ENGINEER)
        self.l2 = principal(Role.L2_ENGINEER)

    async def received(self, **fields):
        intake = IntakeService(self.session, events=self.bus)
        batch = await intake.create_batch(InwardBatchCreate(inward_type=InwardType.PURCHASE), self.warehouse)
        data = {"category": DeviceCategory.LAPTOP, "brand": "Dell", "model": "Latitude 7490", **fields}
        return await intake.add_device(batch.id, DeviceCreate(**data), self.warehouse)

    async def inspected(self, failures=None, spares=None, panels=None, **fields):
        device = await self.received(**fields)
        await InspectionService(self.session, events=self.bus).route_after_inspection(
            device.id,
            InspectionSubmission(
                checklist=checklist_results(failures=failures if failures is not None else {1: "cracked"}),
                spares_required=spares,
                paint_panels=panels or [],
            ),
            self.inspector,
        )
        return device

    async def claimed(self, **kwargs):
        device = await self.inspected(**kwargs)
        await CoordinationService(self.session, events=self.bus).claim_for_coordination(device.id, self.l2)
        return device

    async def awaiting_qc(self, **kwargs):
        device = await self.claimed(**kwargs)
        await CoordinationService(self.session, events=self.bus).send_to_qc(device.id, self.l2)
        return device

    async def with_track_done(self, device, track: Track, payload: Optional[TrackPayload] = None):
        await CoordinationService(self.session, events=self.bus).complete_track_self(
            device.id, track, payload or TrackPayload(), self.l2
        )


@pytest.fixture
def workflow(session, bus, principal, racks) -> Workflow:
    return Workflow(session, bus, principal)


@pytest.fixture
async def client(engine, bus) -> AsyncGenerator[AsyncClient, None]:
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    async def _session():
        async with maker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_event_bus] = lambda: bus
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[..., dict]:
    def _headers(*roles: Role, user_id=None) -> dict:
        token = create_access_token(str(user_id or uuid4()), roles=[r.value for r in roles])
        return {"Authorization": f"Bearer {token}"}

    return _headers
