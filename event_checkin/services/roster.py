from __future__ import annotations
import re
import uuid
from datetime import datetime
from io import BytesIO
from typing import Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, func, or_, select

from ..models import Registration
from ..schemas import RosterStats

EXPORT_HEADERS = [
    "Name",
    "Email",
    "Phone",
    "Organisation",
    "Registration Date",
    "Check-in Status",
    "Check-in Time",
    "Ticket Code",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

async def list_registrations(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    q: str | None = None,
    status: str = "all",
) -> Sequence[Registration]:
    stmt = select(Registration).where(Registration.event_id == event_id)
    if q and q.strip():
        like = f"%{q.strip().lower()}%"
        stmt = stmt.where(or_(
            func.lower(Registration.name).like(like),
            func.lower(Registration.email).like(like),
            func.lower(func.coalesce(Registration.phone, "")).like(like),
        ))
    if status == "checked-in":
        stmt = stmt.where(Registration.checked_in.is_(True))
    elif status == "pending":
        stmt = stmt.where(Registration.checked_in.is_(False))
    stmt = stmt.order_by(Registration.created_at.desc())
    return (await db.execute(stmt)).scalars().all()

async def roster_stats(db: AsyncSession, *, event_id: uuid.UUID) -> RosterStats:
    total, checked = (await db.execute(
        select(
            func.count(Registration.id),
            func.coalesce(func.sum(case((Registration.checked_in.is_(True), 1), else_=0)), 0),
        ).where(Registration.event_id == event_id)
    )).one()
    total, checked = int(total), int(checked)
    return RosterStats(
        event_id=event_id,
        total=total,
        checked_in=checked,
        pending=total - checked,
        check_in_rate=round(checked * 100 / total) if total else 0,
    )

def _fmt(dt: datetime | None, fmt: str) -> str:
    return dt.strftime(fmt) if dt else "N/A"

def export_row(reg: Registration) -> list[str]:
    return [
        reg.name,
        reg.email,
        reg.phone or "N/A",
        reg.organisation or "N/A",
        _fmt(reg.created_at, "%Y-%m-%d"),
        "Checked In" if reg.checked_in else "Pending",
        _fmt(reg.checked_in_at, "%Y-%m-%d %H:%M:%S"),
        reg.ticket_code,
    ]

def build_registrations_workbook(rows: Iterable[Registration]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Event Registrations"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    for col_num, header in enumerate(EXPORT_HEADERS, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for reg in rows:
        ws.append(export_row(reg))

    for column in ws.columns:
        width = max(len(str(c.value or "")) for c in column)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()

def export_filename(title: str | None) -> str:
    safe = re.sub(r"[^a-z0-9]", "_", title or "", flags=re.IGNORECASE) or "event"
    return f"{safe}_checkin_dashboard.xlsx"
