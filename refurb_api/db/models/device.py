from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from refurb_api.db.base import Base, JSONType, TimestampMixin, UUIDPkMixin
from refurb_api.db.models.enums import DeviceStatus, Ownership


class Device(UUIDPkMixin, TimestampMixin, Base):
    """
    A physical unit tracked through the refurbishment pipeline.

    The `*_required` / `*_completed` pairs track each repair concern; a
    completed flag is only ever set while its required flag is set.
    """
    __tablename__ = "devices"

    barcode: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    serial: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    config: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ownership: Mapped[str] = mapped_column(Text, nullable=False, default=Ownership.REFURB_STOCK.value)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=DeviceStatus.RECEIVED.value, index=True)
    grade: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    inward_batch_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("inward_batches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    rack_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("racks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    repair_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    repair_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paint_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paint_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_repair_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_repair_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    battery_boost_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    battery_boost_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    l3_repair_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    l3_repair_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class StockMovement(UUIDPkMixin, TimestampMixin, Base):
    """Audit of a device entering, moving within or leaving the warehouse."""
    __tablename__ = "stock_movements"

    device_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    movement_type: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    from_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OutwardRecord(UUIDPkMixin, TimestampMixin, Base):
    """A sales or rental dispatch covering one or more devices."""
    __tablename__ = "outward_records"

    outward_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    outward_type: Mapped[str] = mapped_column(Text, nullable=False)
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    reference: Mapped[str] = mapped_column(Text, nullable=False)
    shipping_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    packed_by_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    checked_by_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    dispatched_by_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    device_ids: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
