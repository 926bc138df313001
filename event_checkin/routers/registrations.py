from __future__ import annotations
import uuid
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import DashboardAccess, get_claims, get_dashboard_access, get_db, get_event_or_404, get_optional_claims
from ..core.qr import render_qr_png
from ..schemas import RegistrationCreate, RegistrationRead, RosterFilter, RosterStats, TicketRead
from ..services.roster import (
    XLSX_MEDIA_TYPE,
    build_registrations_workbook,
    export_filename,
    list_registrations,
    roster_stats,
)
from ..services.tickets import AlreadyRegistered, PaymentRequired, get_ticket_for_attendee, register_attendee

router = APIRouter(prefix="/events/{event_id}", tags=["registrations"])

# --- 1) Registration: creates the registration and issues its digital ticket
@router.post("/registrations", response_model=TicketRead, status_code=201)
async def register(
    event_id: uuid.UUID,
    payload: RegistrationCreate,
    claims: Dict[str, Any] | None = Depends(get_optional_claims),
    db: AsyncSession = Depends(get_db),
):
    event = await get_event_or_404(db, event_id)
    user_id = uuid.UUID(str(claims["sub"])) if claims else None
    try:
        _, ticket = await register_attendee(db, event=event, form=payload, user_id=user_id)
    except AlreadyRegistered:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already registered")
    except PaymentRequired:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment order required for paid events")
    return TicketRead.model_validate(ticket)

# --- 2) Attendee's own ticket
@router.get("/tickets/me", response_model=TicketRead)
async def my_ticket(event_id: uuid.UUID, claims: dict = Depends(get_claims), db: AsyncSession = Depends(get_db)):
    ticket = await get_ticket_for_attendee(db, event_id=event_id, user_id=uuid.UUID(str(claims["sub"])))
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You don't have a ticket for this event yet")
    return TicketRead.model_validate(ticket)

@router.get("/tickets/me/qr.png")
async def my_ticket_qr(event_id: uuid.UUID, claims: dict = Depends(get_claims), db: AsyncSession = Depends(get_db)):
    ticket = await get_ticket_for_attendee(db, event_id=event_id, user_id=uuid.UUID(str(claims["sub"])))
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You don't have a ticket for this event yet")
    return Response(content=render_qr_png(ticket.qr_code_data), media_type="image/png")

# --- 3) Check-in dashboard roster (operator or delegated grant)
@router.get("/registrations", response_model=list[RegistrationRead])
async def roster(
    q: str | None = Query(default=None, max_length=255),
    status_filter: RosterFilter = Query(default="all", alias="status"),
    access: DashboardAccess = Depends(get_dashboard_access),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_registrations(db, event_id=access.event.id, q=q, status=status_filter)
    return [RegistrationRead.model_validate(r) for r in rows]

@router.get("/registrations/stats", response_model=RosterStats)
async def stats(access: DashboardAccess = Depends(get_dashboard_access), db: AsyncSession = Depends(get_db)):
    return await roster_stats(db, event_id=access.event.id)

@router.get("/registrations/export")
async def export_registrations(
    q: str | None = Query(default=None, max_length=255),
    status_filter: RosterFilter = Query(default="all", alias="status"),
    access: DashboardAccess = Depends(get_dashboard_access),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_registrations(db, event_id=access.event.id, q=q, status=status_filter)
    filename = export_filename(access.event.title)
    return Response(
        content=build_registrations_workbook(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
