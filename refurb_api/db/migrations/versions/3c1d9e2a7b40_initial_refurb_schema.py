"""Initial refurbishment schema.

- purchase_orders, purchase_order_items
- inward_batches
- racks
- devices, stock_movements, outward_records
- repair_jobs, display_repair_jobs, battery_boost_jobs, l3_repair_jobs
- paint_panels
- inspection_checklist_items, qc_records
- spare_parts

Enum-valued columns are stored as text; JSON columns become JSONB on PostgreSQL.
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d9e2a7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _pk() -> sa.Column:
    return sa.Column("id", sa.Uuid(), nullable=False)


def _timestamps() -> List[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _device_fk(table: str) -> sa.Column:
    return sa.Column(
        "device_id",
        sa.Uuid(),
        sa.ForeignKey("devices.id", name=f"fk_{table}_device_id_devices", ondelete="CASCADE"),
        nullable=False,
    )


def _job_fk(table: str) -> sa.Column:
    return sa.Column(
        "repair_job_id",
        sa.Uuid(),
        sa.ForeignKey("repair_jobs.id", name=f"fk_{table}_repair_job_id_repair_jobs", ondelete="SET NULL"),
        nullable=True,
    )


def _sub_job_columns(table: str) -> List[sa.Column]:
    return [
        _device_fk(table),
        _job_fk(table),
        sa.Column("status", sa.Text(), nullable=False, server_default="PENDING"),
        sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_by_l2", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    # Procurement
    op.create_table(
        "purchase_orders",
        _pk(),
        sa.Column("po_number", sa.Text(), nullable=False),
        sa.Column("supplier", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="OPEN"),
        sa.Column("order_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_orders"),
        sa.UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
    )
    op.create_table(
        "purchase_order_items",
        _pk(),
        sa.Column(
            "purchase_order_id",
            sa.Uuid(),
            sa.ForeignKey(
                "purchase_orders.id",
                name="fk_purchase_order_items_purchase_order_id_purchase_orders",
                ondelete="CASCADE",
            ),
            nullable=False,
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_order_items"),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity_positive"),
    )
    op.create_index(
        "ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"]
    )

    op.create_table(
        "inward_batches",
        _pk(),
        sa.Column("batch_code", sa.Text(), nullable=False),
        sa.Column("inward_type", sa.Text(), nullable=False),
        sa.Column("supplier", sa.Text(), nullable=True),
        sa.Column("customer", sa.Text(), nullable=True),
        sa.Column(
            "purchase_order_id",
            sa.Uuid(),
            sa.ForeignKey(
                "purchase_orders.id",
                name="fk_inward_batches_purchase_order_id_purchase_orders",
                ondelete="SET NULL",
            ),
            nullable=True,
        ),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("verification_status", sa.Text(), nullable=False, server_default="UNVERIFIED"),
        sa.Column("verification_result", JSON_TYPE, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by_id", sa.Uuid(), nullable=True),
        sa.Column("override_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_inward_batches"),
        sa.UniqueConstraint("batch_code", name="uq_inward_batches_batch_code"),
    )

    # Warehouse
    op.create_table(
        "racks",
        _pk(),
        sa.Column("rack_code", sa.Text(), nullable=False),
        sa.Column("stage", sa.Text(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_racks"),
        sa.UniqueConstraint("rack_code", name="uq_racks_rack_code"),
        sa.CheckConstraint("capacity > 0", name="ck_racks_capacity_positive"),
    )
    op.create_index("ix_racks_stage", "racks", ["stage"])

    op.create_table(
        "spare_parts",
        _pk(),
        sa.Column("part_code", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_stock", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_spare_parts"),
        sa.UniqueConstraint("part_code", name="uq_spare_parts_part_code"),
        sa.CheckConstraint("current_stock >= 0", name="ck_spare_parts_current_stock_non_negative"),
        sa.CheckConstraint("min_stock >= 0", name="ck_spare_parts_min_stock_non_negative"),
        sa.CheckConstraint("max_stock >= 0", name="ck_spare_parts_max_stock_non_negative"),
    )

    # Devices
    flags = [
        "repair",
        "paint",
        "display_repair",
        "battery_boost",
        "l3_repair",
    ]
    op.create_table(
        "devices",
        _pk(),
        sa.Column("barcode", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("serial", sa.Text(), nullable=True),
        sa.Column("config", sa.Text(), nullable=True),
        sa.Column("ownership", sa.Text(), nullable=False, server_default="REFURB_STOCK"),
        sa.Column("status", sa.Text(), nullable=False, server_default="RECEIVED"),
        sa.Column("grade", sa.Text(), nullable=True),
        sa.Column(
            "inward_batch_id",
            sa.Uuid(),
            sa.ForeignKey("inward_batches.id", name="fk_devices_inward_batch_id_inward_batches", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "rack_id",
            sa.Uuid(),
            sa.ForeignKey("racks.id", name="fk_devices_rack_id_racks", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("location", sa.Text(), nullable=True),
        *[
            sa.Column(f"{flag}_{suffix}", sa.Boolean(), nullable=False, server_default=sa.false())
            for flag in flags
            for suffix in ("required", "completed")
        ],
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_devices"),
        sa.UniqueConstraint("barcode", name="uq_devices_barcode"),
    )
    op.create_index("ix_devices_status", "devices", ["status"])
    op.create_index("ix_devices_inward_batch_id", "devices", ["inward_batch_id"])
    op.create_index("ix_devices_rack_id", "devices", ["rack_id"])

    op.create_table(
        "stock_movements",
        _pk(),
        _device_fk("stock_movements"),
        sa.Column("movement_type", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("from_location", sa.Text(), nullable=True),
        sa.Column("to_location", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_movements"),
    )
    op.create_index("ix_stock_movements_device_id", "stock_movements", ["device_id"])

    op.create_table(
        "outward_records",
        _pk(),
        sa.Column("outward_code", sa.Text(), nullable=False),
        sa.Column("outward_type", sa.Text(), nullable=False),
        sa.Column("customer", sa.Text(), nullable=False),
        sa.Column("reference", sa.Text(), nullable=False),
        sa.Column("shipping_details", sa.Text(), nullable=True),
        sa.Column("packed_by_id", sa.Uuid(), nullable=True),
        sa.Column("checked_by_id", sa.Uuid(), nullable=True),
        sa.Column("dispatched_by_id", sa.Uuid(), nullable=True),
        sa.Column("device_ids", JSON_TYPE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_outward_records"),
        sa.UniqueConstraint("outward_code", name="uq_outward_records_outward_code"),
    )

    # Repair
    op.create_table(
        "repair_jobs",
        _pk(),
        sa.Column("job_code", sa.Text(), nullable=False),
        _device_fk("repair_jobs"),
        sa.Column("inspection_eng_id", sa.Uuid(), nullable=True),
        sa.Column("l2_engineer_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="READY_FOR_REPAIR"),
        sa.Column("reported_issues", JSON_TYPE, nullable=True),
        sa.Column("spares_required", sa.Text(), nullable=True),
        sa.Column("spares_issued", sa.Text(), nullable=True),
        sa.Column("recommended_paint_panels", JSON_TYPE, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("repair_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("repair_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tat_due_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_repair_jobs"),
        sa.UniqueConstraint("job_code", name="uq_repair_jobs_job_code"),
    )
    op.create_index("ix_repair_jobs_device_id", "repair_jobs", ["device_id"])
    op.create_index("ix_repair_jobs_l2_engineer_id", "repair_jobs", ["l2_engineer_id"])

    op.create_table(
        "display_repair_jobs",
        _pk(),
        *_sub_job_columns("display_repair_jobs"),
        sa.Column("reported_issues", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_display_repair_jobs"),
    )
    op.create_table(
        "battery_boost_jobs",
        _pk(),
        *_sub_job_columns("battery_boost_jobs"),
        sa.Column("initial_capacity", sa.Integer(), nullable=True),
        sa.Column("target_capacity", sa.Integer(), nullable=True),
        sa.Column("final_capacity", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_battery_boost_jobs"),
    )
    op.create_table(
        "l3_repair_jobs",
        _pk(),
        *_sub_job_columns("l3_repair_jobs"),
        sa.Column("issue_type", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_l3_repair_jobs"),
    )
    for tbl in ("display_repair_jobs", "battery_boost_jobs", "l3_repair_jobs"):
        op.create_index(f"ix_{tbl}_device_id", tbl, ["device_id"])

    op.create_table(
        "paint_panels",
        _pk(),
        _device_fk("paint_panels"),
        _job_fk("paint_panels"),
        sa.Column("panel_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="AWAITING_PAINT"),
        sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
        sa.Column("completed_by_l2", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_paint_panels"),
    )
    op.create_index("ix_paint_panels_device_id", "paint_panels", ["device_id"])

    # Quality
    op.create_table(
        "inspection_checklist_items",
        _pk(),
        _device_fk("inspection_checklist_items"),
        sa.Column("item_index", sa.Integer(), nullable=False),
        sa.Column("item_text", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("checked_by_id", sa.Uuid(), nullable=True),
        sa.Column("checked_at_stage", sa.Text(), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_inspection_checklist_items"),
    )
    op.create_index(
        "ix_inspection_checklist_items_device_id", "inspection_checklist_items", ["device_id"]
    )

    op.create_table(
        "qc_records",
        _pk(),
        _device_fk("qc_records"),
        sa.Column("qc_eng_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("grade", sa.Text(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("checklist_snapshot", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_qc_records"),
    )
    op.create_index("ix_qc_records_device_id", "qc_records", ["device_id"])


def downgrade() -> None:
    for tbl in [
        "qc_records",
        "inspection_checklist_items",
        "paint_panels",
        "l3_repair_jobs",
        "battery_boost_jobs",
        "display_repair_jobs",
        "repair_jobs",
        "outward_records",
        "stock_movements",
        "devices",
        "spare_parts",
        "racks",
        "inward_batches",
        "purchase_order_items",
        "purchase_orders",
    ]:
        op.drop_table(tbl)
