from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from refurb_api.db.base import utcnow

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class WorkflowEvent(BaseModel):
    """Something that happened in the workflow, delivered after the transaction commits."""

    type: str = Field(..., description="Dotted event type, e.g. qc.failed")
    message: str = Field(..., description="Human readable summary")
    actor_id: Optional[UUID] = Field(default=None, description="User who caused the event")
    device_id: Optional[UUID] = Field(default=None, description="Device concerned, if any")
    recipient_ids: List[UUID] = Field(default_factory=list, description="Users to notify")
    recipient_roles: List[str] = Field(default_factory=list, description="Roles to notify")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event specific payload")
    occurred_at: datetime = Field(default_factory=utcnow)


class NotificationGateway:
    """
    Delivery channel for user notifications.

    The default implementation only logs; deployments plug in email or push.
    """

    async def send(
        self,
        *,
        title: str,
        message: str,
        user_ids: List[UUID],
        roles: List[str],
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.info("Notify users=%s roles=%s: %s | %s", [str(u) for u in user_ids], roles, title, message)


class ActivityLogger:
    """Sink for the activity feed; the default implementation logs."""

    async def log(
        self,
        action: str,
        details: str,
        user_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.info("Activity %s by %s: %s", action, user_id or "-", details)


_NOTIFY_TITLES = {
    "spares.requested": "Spares requested",
    "spares.issued": "Spares issued",
    "qc.failed": "QC failed - rework required",
    "paint.ready": "Paint panels ready for collection",
    "tat.approaching": "Repair TAT approaching",
    "tat.breached": "Repair TAT breached",
}

EventHandler = Callable[[WorkflowEvent], Awaitable[None]]


# PUBLIC_INTERFACE
class EventBus:
    """
    In-process outbound event queue.

    Services call `emit` once their transaction has committed; a background
    consumer started with the app delivers each event to every subscribed
    handler. A failing handler is logged and never affects the business
    operation or the other handlers.
    """

    def __init__(self, maxsize: int = 10000) -> None:
        self._queue: asyncio.Queue[WorkflowEvent] = asyncio.Queue(maxsize=maxsize)
        self._handlers: List[EventHandler] = []
        self._task: Optional[asyncio.Task] = None

    # PUBLIC_INTERFACE
    def subscribe(self, handler: EventHandler) -> None:
        """Register an async handler called for every event."""
        self._handlers.append(handler)

    # PUBLIC_INTERFACE
    def emit(self, event: WorkflowEvent) -> None:
        """Queue an event without waiting for delivery."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Event queue full; dropping event type=%s device=%s", event.type, event.device_id)

    # PUBLIC_INTERFACE
    def drain(self) -> List[WorkflowEvent]:
        """Remove and return every queued event without delivering it."""
        events: List[WorkflowEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    async def deliver(self, event: WorkflowEvent) -> None:
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception("Event handler failed for event type=%s", event.type)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(event)
            finally:
                self._queue.task_done()

    # PUBLIC_INTERFACE
    def start(self) -> None:
        """Start the background consumer on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._consume())

    # PUBLIC_INTERFACE
    async def stop(self) -> None:
        """Deliver what is queued, then stop the consumer."""
        if self._task is None:
            return
        await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


def notification_handler(gateway: NotificationGateway) -> EventHandler:
    """Forward events with recipients to the notification gateway."""

    async def _handle(event: WorkflowEvent) -> None:
        if not event.recipient_ids and not event.recipient_roles:
            return
        await gateway.send(
            title=_NOTIFY_TITLES.get(event.type, event.type),
            message=event.message,
            user_ids=event.recipient_ids,
            roles=event.recipient_roles,
            data={"device_id": str(event.device_id) if event.device_id else None, **event.data},
        )

    return _handle


def activity_handler(activity: ActivityLogger) -> EventHandler:
    """Record every event in the activity feed."""

    async def _handle(event: WorkflowEvent) -> None:
        metadata = dict(event.data)
        if event.device_id:
            metadata["device_id"] = str(event.device_id)
        await activity.log(event.type, event.message, event.actor_id, metadata)

    return _handle


# PUBLIC_INTERFACE
def build_event_bus(
    gateway: Optional[NotificationGateway] = None,
    activity: Optional[ActivityLogger] = None,
) -> EventBus:
    """Create a bus wired to the notification and activity collaborators."""
    bus = EventBus()
    bus.subscribe(notification_handler(gateway or NotificationGateway()))
    bus.subscribe(activity_handler(activity or ActivityLogger()))
    return bus


# Singleton instance
event_bus = build_event_bus()
