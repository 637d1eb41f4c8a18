from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from refurb_api.db.base import Base, TimestampMixin, UUIDPkMixin


class SparePart(UUIDPkMixin, TimestampMixin, Base):
    """Spare part stock line; `current_stock` never goes negative."""
    __tablename__ = "spare_parts"
    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="current_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="min_stock_non_negative"),
        CheckConstraint("max_stock >= 0", name="max_stock_non_negative"),
    )

    part_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @property
    def stock_status(self) -> str:
        if self.current_stock < self.min_stock:
            return "LOW"
        if self.current_stock > self.max_stock:
            return "OVERSTOCK"
        return "NORMAL"


class Rack(UUIDPkMixin, TimestampMixin, Base):
    """Physical shelving assigned to one workflow stage with a fixed capacity."""
    __tablename__ = "racks"
    __table_args__ = (CheckConstraint("capacity > 0", name="capacity_positive"),)

    rack_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    stage: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
