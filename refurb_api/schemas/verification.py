from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ReceivedDevice(BaseModel):
    """Device as seen by the matcher."""
    barcode: str
    category: str
    brand: str
    model: str


class ExpectedLine(BaseModel):
    """PO line as seen by the matcher."""
    category: str
    brand: str
    model: str
    quantity: int = Field(..., gt=0)


class MissingUnit(BaseModel):
    """One expected unit that did not arrive; `expected`/`received` describe its PO line."""
    category: str
    brand: str
    model: str
    expected: int
    received: int


class MissingLine(BaseModel):
    category: str
    brand: str
    model: str
    expected: int
    received: int
    missing: int


class VerificationResult(BaseModel):
    """Reconciliation of a shipment against its purchase order."""
    status: str = Field(..., description="VERIFIED or PARTIAL")
    match_percentage: float
    total_expected: int
    matched_count: int
    matched: List[ReceivedDevice] = Field(default_factory=list)
    missing: List[MissingUnit] = Field(default_factory=list, description="One entry per unit not received")
    shortfalls: List[MissingLine] = Field(default_factory=list, description="Short PO lines with their counts")
    extra: List[ReceivedDevice] = Field(default_factory=list)
    discrepancies: List[str] = Field(default_factory=list)


class OverrideRequest(BaseModel):
    reason: str = Field(..., description="At least 10 non-blank characters")

