from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from refurb_api.db.base import Base, JSONType, TimestampMixin, UUIDPkMixin
from refurb_api.db.models.enums import PanelStatus, RepairJobStatus, SubJobStatus


class RepairJob(UUIDPkMixin, TimestampMixin, Base):
    """
    The repair work order opened at inspection.

    `l2_engineer_id` is the coordinator; a job with a coordinator is "claimed".
    """
    __tablename__ = "repair_jobs"

    job_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    device_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inspection_eng_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    l2_engineer_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=RepairJobStatus.READY_FOR_REPAIR.value)

    reported_issues: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    spares_required: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spares_issued: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recommended_paint_panels: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    repair_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    repair_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    tat_due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class SubJobMixin:
    """Columns shared by the specialist sub-jobs (display, battery, L3)."""

    @declared_attr
    def device_id(cls) -> Mapped[UUID]:
        return mapped_column(
            Uuid(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
        )

    @declared_attr
    def repair_job_id(cls) -> Mapped[Optional[UUID]]:
        return mapped_column(
            Uuid(as_uuid=True), ForeignKey("repair_jobs.id", ondelete="SET NULL"), nullable=True
        )

    status: Mapped[str] = mapped_column(Text, nullable=False, default=SubJobStatus.PENDING.value)
    assigned_to_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_by_l2: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class DisplayRepairJob(UUIDPkMixin, SubJobMixin, TimestampMixin, Base):
    __tablename__ = "display_repair_jobs"

    reported_issues: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class BatteryBoostJob(UUIDPkMixin, SubJobMixin, TimestampMixin, Base):
    __tablename__ = "battery_boost_jobs"

    initial_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class L3RepairJob(UUIDPkMixin, SubJobMixin, TimestampMixin, Base):
    __tablename__ = "l3_repair_jobs"

    issue_type: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PaintPanel(UUIDPkMixin, TimestampMixin, Base):
    """One cosmetic panel sent to the paint shop."""
    __tablename__ = "paint_panels"

    device_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    repair_job_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("repair_jobs.id", ondelete="SET NULL"), nullable=True
    )
    panel_type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=PanelStatus.AWAITING_PAINT.value)
    assigned_to_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    completed_by_l2: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
