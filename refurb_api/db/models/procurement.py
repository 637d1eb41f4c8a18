from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refurb_api.db.base import Base, JSONType, TimestampMixin, UUIDPkMixin
from refurb_api.db.models.enums import VerificationStatus


class PurchaseOrder(UUIDPkMixin, TimestampMixin, Base):
    """Purchase order header; its lines are the expected contents of a shipment."""
    __tablename__ = "purchase_orders"

    po_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    supplier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="OPEN")
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    items: Mapped[List["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.line_no",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class PurchaseOrderItem(UUIDPkMixin, TimestampMixin, Base):
    """Expected line on a purchase order (category, brand, model, quantity)."""
    __tablename__ = "purchase_order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="quantity_positive"),)

    purchase_order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    purchase_order: Mapped[PurchaseOrder] = relationship("PurchaseOrder", back_populates="items")


class InwardBatch(UUIDPkMixin, TimestampMixin, Base):
    """A shipment received into the warehouse, optionally reconciled against a PO."""
    __tablename__ = "inward_batches"

    batch_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    inward_type: Mapped[str] = mapped_column(Text, nullable=False)
    supplier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    purchase_order_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True
    )
    created_by_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    verification_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=VerificationStatus.UNVERIFIED.value
    )
    verification_result: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    override_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_locked(self) -> bool:
        return self.verification_status in (
            VerificationStatus.VERIFIED.value,
            VerificationStatus.SKIPPED.value,
        )
