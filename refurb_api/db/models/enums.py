"""
Closed vocabularies used by the ORM models and API schemas.

Columns store the `.value` of these enums as text.
"""

from __future__ import annotations

from enum import Enum


class DeviceCategory(str, Enum):
    LAPTOP = "LAPTOP"
    DESKTOP = "DESKTOP"
    WORKSTATION = "WORKSTATION"
    SERVER = "SERVER"
    MONITOR = "MONITOR"
    STORAGE = "STORAGE"
    NETWORKING_CARD = "NETWORKING_CARD"


class DeviceStatus(str, Enum):
    RECEIVED = "RECEIVED"
    PENDING_INSPECTION = "PENDING_INSPECTION"
    WAITING_FOR_SPARES = "WAITING_FOR_SPARES"
    READY_FOR_REPAIR = "READY_FOR_REPAIR"
    UNDER_REPAIR = "UNDER_REPAIR"
    AWAITING_QC = "AWAITING_QC"
    READY_FOR_STOCK = "READY_FOR_STOCK"
    STOCK_OUT_SOLD = "STOCK_OUT_SOLD"
    STOCK_OUT_RENTAL = "STOCK_OUT_RENTAL"
    SCRAPPED = "SCRAPPED"


TERMINAL_STATUSES = frozenset(
    {DeviceStatus.STOCK_OUT_SOLD, DeviceStatus.STOCK_OUT_RENTAL, DeviceStatus.SCRAPPED}
)


class Ownership(str, Enum):
    REFURB_STOCK = "REFURB_STOCK"
    RENTAL_RETURN = "RENTAL_RETURN"
    CUSTOMER = "CUSTOMER"


class Grade(str, Enum):
    A = "A"
    B = "B"


class RepairJobStatus(str, Enum):
    WAITING_FOR_SPARES = "WAITING_FOR_SPARES"
    READY_FOR_REPAIR = "READY_FOR_REPAIR"
    UNDER_REPAIR = "UNDER_REPAIR"
    AWAITING_QC = "AWAITING_QC"
    REPAIR_CLOSED = "REPAIR_CLOSED"


class SubJobStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PanelStatus(str, Enum):
    AWAITING_PAINT = "AWAITING_PAINT"
    IN_PAINT = "IN_PAINT"
    READY_FOR_COLLECTION = "READY_FOR_COLLECTION"
    FITTED = "FITTED"
    CANCELLED = "CANCELLED"


class Track(str, Enum):
    DISPLAY = "DISPLAY"
    BATTERY = "BATTERY"
    L3 = "L3"
    PAINT = "PAINT"


class L3IssueType(str, Enum):
    MOTHERBOARD = "MOTHERBOARD"
    DOMAIN_LOCK = "DOMAIN_LOCK"
    BIOS_LOCK = "BIOS_LOCK"
    POWER_ON_ISSUE = "POWER_ON_ISSUE"


PANEL_TYPES = ("Top Cover", "Bottom Cover", "Palmrest", "Bezel", "Hinge Cover", "LCD Back")


class ChecklistResult(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class ChecklistStage(str, Enum):
    INSPECTION = "INSPECTION"
    QC = "QC"


class QCStatus(str, Enum):
    PASSED = "PASSED"
    FAILED_REWORK = "FAILED_REWORK"


class RackStage(str, Enum):
    RECEIVED = "RECEIVED"
    WAITING_FOR_REPAIR = "WAITING_FOR_REPAIR"
    UNDER_REPAIR = "UNDER_REPAIR"
    AWAITING_QC = "AWAITING_QC"
    READY_FOR_DISPATCH = "READY_FOR_DISPATCH"


class InwardType(str, Enum):
    PURCHASE = "PURCHASE"
    RENTAL_RETURN = "RENTAL_RETURN"
    CUSTOMER_RETURN = "CUSTOMER_RETURN"


class VerificationStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"
    PARTIAL = "PARTIAL"
    SKIPPED = "SKIPPED"


class MovementType(str, Enum):
    INWARD = "INWARD"
    MOVE = "MOVE"
    SALES_OUTWARD = "SALES_OUTWARD"
    RENTAL_OUTWARD = "RENTAL_OUTWARD"
    SCRAP = "SCRAP"


class OutwardType(str, Enum):
    SALES = "SALES"
    RENTAL = "RENTAL"
