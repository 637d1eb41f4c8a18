from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from refurb_api.db.models.enums import (
    DeviceCategory,
    InwardType,
    OutwardType,
    Ownership,
)


class DeviceRead(BaseModel):
    """Device read model."""
    id: UUID = Field(..., description="Device ID")
    barcode: str = Field(..., description="Unique barcode")
    category: str = Field(..., description="Device category")
    brand: str = Field(..., description="Brand")
    model: str = Field(..., description="Model")
    serial: Optional[str] = Field(None)
    config: Optional[str] = Field(None)
    ownership: str = Field(..., description="Ownership")
    status: str = Field(..., description="Lifecycle status")
    grade: Optional[str] = Field(None)
    inward_batch_id: Optional[UUID] = Field(None)
    rack_id: Optional[UUID] = Field(None)
    location: Optional[str] = Field(None, description="Rack code the device sits on")
    repair_required: bool = False
    repair_completed: bool = False
    paint_required: bool = False
    paint_completed: bool = False
    display_repair_required: bool = False
    display_repair_completed: bool = False
    battery_boost_required: bool = False
    battery_boost_completed: bool = False
    l3_repair_required: bool = False
    l3_repair_completed: bool = False
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class DeviceCreate(BaseModel):
    """Device received into an inward batch."""
    category: DeviceCategory = Field(..., description="Device category")
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    serial: Optional[str] = Field(None)
    config: Optional[str] = Field(None, description="Free-text configuration (CPU/RAM/storage)")
    ownership: Ownership = Field(Ownership.REFURB_STOCK)
    barcode: Optional[str] = Field(None, description="Barcode; generated when omitted")


class StockMovementRead(BaseModel):
    """Stock movement read model."""
    id: UUID
    device_id: UUID
    movement_type: str
    user_id: Optional[UUID] = None
    reference: Optional[str] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PurchaseOrderItemCreate(BaseModel):
    """Expected line on a purchase order."""
    category: DeviceCategory = Field(..., description="Device category")
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class PurchaseOrderItemRead(BaseModel):
    id: UUID
    line_no: int
    category: str
    brand: str
    model: str
    quantity: int

    class Config:
        from_attributes = True


class PurchaseOrderCreate(BaseModel):
    """Create PO payload with its expected lines."""
    po_number: str = Field(..., min_length=1, description="PO number (unique)")
    supplier: Optional[str] = Field(None)
    order_date: Optional[date] = Field(None)
    items: List[PurchaseOrderItemCreate] = Field(default_factory=list)


class PurchaseOrderRead(BaseModel):
    """PO read model."""
    id: UUID = Field(..., description="PO ID")
    po_number: str = Field(..., description="PO number")
    supplier: Optional[str] = None
    status: str
    order_date: Optional[date] = None
    items: List[PurchaseOrderItemRead] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


class InwardBatchCreate(BaseModel):
    """Create inward batch payload."""
    inward_type: InwardType = Field(..., description="PURCHASE, RENTAL_RETURN or CUSTOMER_RETURN")
    supplier: Optional[str] = Field(None)
    customer: Optional[str] = Field(None)
    purchase_order_id: Optional[UUID] = Field(None, description="PO the shipment is reconciled against")


class InwardBatchRead(BaseModel):
    """Inward batch read model."""
    id: UUID
    batch_code: str
    inward_type: str
    supplier: Optional[str] = None
    customer: Optional[str] = None
    purchase_order_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    verification_status: str
    verification_result: Optional[dict] = None
    verified_at: Optional[datetime] = None
    verified_by_id: Optional[UUID] = None
    override_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OutwardCreate(BaseModel):
    """Dispatch devices out of stock."""
    outward_type: OutwardType = Field(..., description="SALES or RENTAL")
    customer: str = Field(..., min_length=1)
    reference: str = Field(..., min_length=1, description="Invoice or rental agreement reference")
    device_ids: List[UUID] = Field(..., min_length=1)
    shipping_details: Optional[str] = Field(None)
    packed_by_id: Optional[UUID] = Field(None)
    checked_by_id: Optional[UUID] = Field(None)

    @field_validator("device_ids")
    @classmethod
    def _unique_devices(cls, v: List[UUID]) -> List[UUID]:
        if len(set(v)) != len(v):
            raise ValueError("device_ids must be unique")
        return v


class OutwardRead(BaseModel):
    id: UUID
    outward_code: str
    outward_type: str
    customer: str
    reference: str
    shipping_details: Optional[str] = None
    dispatched_by_id: Optional[UUID] = None
    device_ids: List[str] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


class ScrapRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Why the device is scrapped")
