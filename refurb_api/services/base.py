from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import PermissionDenied
from refurb_api.core.security import Principal, Role
from refurb_api.core.settings import AppSettings, get_app_settings
from refurb_api.services.events import EventBus, WorkflowEvent, event_bus

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services keep business logic and orchestration, delegating data access to
    repositories. Each public operation runs inside `unit_of_work()`: one
    commit on success, a rollback on any exception, and recorded events are
    handed to the event bus only after the commit.
    """

    def __init__(
        self,
        session: AsyncSession,
        events: Optional[EventBus] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self.session = session
        self.events = events if events is not None else event_bus
        self.settings = settings or get_app_settings()
        self._pending_events: List[WorkflowEvent] = []

    def record_event(
        self,
        event_type: str,
        message: str,
        *,
        actor: Optional[Principal] = None,
        device_id: Optional[UUID] = None,
        recipient_ids: Optional[List[UUID]] = None,
        recipient_roles: Optional[List[str]] = None,
        **data: Any,
    ) -> None:
        """Stage an event for delivery once the current unit of work commits."""
        self._pending_events.append(
            WorkflowEvent(
                type=event_type,
                message=message,
                actor_id=actor.id if actor else None,
                device_id=device_id,
                recipient_ids=[r for r in (recipient_ids or []) if r is not None],
                recipient_roles=list(recipient_roles or []),
                data=data,
            )
        )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[None]:
        """Commit once on success; roll back and discard staged events on failure."""
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            self._pending_events.clear()
            raise
        events, self._pending_events = self._pending_events, []
        for event in events:
            self.events.emit(event)

    @staticmethod
    def require_role(principal: Principal, *roles: Role) -> None:
        if not principal.has_any_role(Role.ADMIN, *roles):
            raise PermissionDenied(
                "Requires one of the roles: " + ", ".join(r.value for r in roles),
                details={"required": [r.value for r in roles]},
            )
