"""
ORM models for the refurbishment pipeline: procurement and intake, devices and
stock movements, repair jobs and specialist sub-jobs, checklists and QC,
spare parts and racks.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .procurement import (  # noqa: F401
    PurchaseOrder,
    PurchaseOrderItem,
    InwardBatch,
)
from .inventory import (  # noqa: F401
    SparePart,
    Rack,
)
from .device import (  # noqa: F401
    Device,
    StockMovement,
    OutwardRecord,
)
from .repair import (  # noqa: F401
    RepairJob,
    DisplayRepairJob,
    BatteryBoostJob,
    L3RepairJob,
    PaintPanel,
)
from .quality import (  # noqa: F401
    InspectionChecklistItem,
    QCRecord,
)
