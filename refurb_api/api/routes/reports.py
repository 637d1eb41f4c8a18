from __future__ import annotations

import io
from typing import List, Optional, Sequence
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_session, require_roles
from refurb_api.core.security import Role
from refurb_api.db.base import utcnow
from refurb_api.db.models.device import Device
from refurb_api.db.models.repair import RepairJob
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.procurement import InwardBatchRepository

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)

_REPORT_ROLES = (Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)

INVENTORY_COLUMNS = [
    "barcode",
    "serial",
    "brand",
    "model",
    "category",
    "status",
    "grade",
    "ownership",
    "location",
    "created_at",
    "updated_at",
]

REPAIR_JOB_COLUMNS = [
    "job_code",
    "barcode",
    "status",
    "reported_issues",
    "spares_required",
    "spares_issued",
    "coordinator_id",
    "repair_start_date",
    "tat_due_date",
    "repair_end_date",
]

VERIFICATION_COLUMNS = ["result", "category", "brand", "model", "barcode", "quantity"]


def _export_dataframe(
    df: pd.DataFrame,
    filename_base: str,
    export_format: str,
) -> StreamingResponse:
    """
    Render a DataFrame as a downloadable file.

    Supported formats:
      - csv: text/csv (also the fallback for unknown formats)
      - xlsx: spreadsheet written with openpyxl
      - pdf: landscape table rendered with reportlab
    """
    export_format = (export_format or "csv").lower()

    if export_format in ("xlsx", "excel"):
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Report")
        buffer.seek(0)
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'}
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    if export_format == "pdf":
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4, landscape
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=landscape(A4), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
        )
        styles = getSampleStyleSheet()
        title = f"{filename_base.replace('_', ' ').title()} ({utcnow().strftime('%Y-%m-%d %H:%M UTC')})"
        data = [list(df.columns)] + df.fillna("").astype(str).values.tolist()
        table = Table(data, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 7),
                    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ]
            )
        )
        doc.build([Paragraph(title, styles["Title"]), table])
        buffer.seek(0)
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.pdf"'}
        return StreamingResponse(buffer, media_type="application/pdf", headers=headers)

    text = io.StringIO()
    df.to_csv(text, index=False)
    text.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename_base}.csv"'}
    return StreamingResponse(text, media_type="text/csv", headers=headers)


async def _fetch_all(session: AsyncSession, stmt: Select) -> Sequence:
    res = await session.execute(stmt)
    return list(res.all())


# PUBLIC_INTERFACE
@router.get(
    "/inventory",
    summary="Device inventory report",
    description="Exports every device with its status, grade, ownership and rack location.",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(*_REPORT_ROLES))],
)
async def inventory_report(
    session: AsyncSession = Depends(get_session),
    status: Optional[str] = Query(None, description="Filter by device status"),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    stmt = select(*(getattr(Device, c) for c in INVENTORY_COLUMNS)).order_by(Device.barcode)
    if status:
        stmt = stmt.where(Device.status == status)
    rows = await _fetch_all(session, stmt)
    df = pd.DataFrame([dict(zip(INVENTORY_COLUMNS, r)) for r in rows], columns=INVENTORY_COLUMNS)
    return _export_dataframe(df, "device_inventory", format)


# PUBLIC_INTERFACE
@router.get(
    "/repair-jobs",
    summary="Repair job report",
    description="Exports repair jobs with reported issues, spares and turnaround dates.",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(Role.L2_ENGINEER, *_REPORT_ROLES))],
)
async def repair_job_report(
    session: AsyncSession = Depends(get_session),
    status: Optional[str] = Query(None, description="Filter by job status"),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    """
    One row per repair job.

    reported_issues is flattened to its functional and cosmetic text.
    """
    stmt = (
        select(RepairJob, Device.barcode)
        .join(Device, Device.id == RepairJob.device_id)
        .order_by(RepairJob.created_at.desc())
    )
    if status:
        stmt = stmt.where(RepairJob.status == status)
    rows = await _fetch_all(session, stmt)

    data = []
    for job, barcode in rows:
        issues = job.reported_issues or {}
        data.append(
            {
                "job_code": job.job_code,
                "barcode": barcode,
                "status": job.status,
                "reported_issues": "; ".join(
                    part for part in (issues.get("functional"), issues.get("cosmetic")) if part
                ),
                "spares_required": job.spares_required,
                "spares_issued": job.spares_issued,
                "coordinator_id": str(job.l2_engineer_id) if job.l2_engineer_id else None,
                "repair_start_date": job.repair_start_date,
                "tat_due_date": job.tat_due_date,
                "repair_end_date": job.repair_end_date,
            }
        )
    df = pd.DataFrame(data, columns=REPAIR_JOB_COLUMNS)
    return _export_dataframe(df, "repair_jobs", format)


def verification_rows(result: dict) -> List[dict]:
    """Flatten a stored verification result into matched / missing / extra sheet rows."""
    rows: List[dict] = []
    for d in result.get("matched", []):
        rows.append({"result": "MATCHED", **{k: d.get(k) for k in ("category", "brand", "model", "barcode")}, "quantity": 1})
    for m in result.get("missing", []):
        rows.append(
            {
                "result": "MISSING",
                "category": m.get("category"),
                "brand": m.get("brand"),
                "model": m.get("model"),
                "barcode": None,
                "quantity": 1,
            }
        )
    for d in result.get("extra", []):
        rows.append({"result": "EXTRA", **{k: d.get(k) for k in ("category", "brand", "model", "barcode")}, "quantity": 1})
    return rows


# PUBLIC_INTERFACE
@router.get(
    "/inward/{batch_id}/verification",
    summary="Batch verification sheet",
    description=(
        "Printable sheet of a batch's verification: matched, missing and extra rows. "
        "Skipped batches list their devices as received."
    ),
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(*_REPORT_ROLES))],
)
async def batch_verification_report(
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
    format: str = Query("pdf", description="Export format: csv | xlsx | pdf"),
):
    batch = await InwardBatchRepository(session).get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Inward batch not found")

    if batch.verification_result:
        data = verification_rows(batch.verification_result)
    else:
        devices = await DeviceRepository(session).list_for_batch(batch.id)
        data = [
            {
                "result": batch.verification_status,
                "category": d.category,
                "brand": d.brand,
                "model": d.model,
                "barcode": d.barcode,
                "quantity": 1,
            }
            for d in devices
        ]
    df = pd.DataFrame(data, columns=VERIFICATION_COLUMNS)
    return _export_dataframe(df, f"verification_{batch.batch_code}", format)
