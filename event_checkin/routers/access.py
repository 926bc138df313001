from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_claims, get_db, get_managed_event
from ..models import AccessGrant, Event
from ..schemas import GrantCreate, GrantRead, GrantValidation
from ..services.access import generate_grant, grant_url, list_grants, validate_grant

router = APIRouter(tags=["access"])

def _grant_read(g: AccessGrant) -> GrantRead:
    return GrantRead(
        token=g.token,
        event_id=g.event_id,
        grantee_email=g.grantee_email,
        granted_by=g.granted_by,
        expires_at=g.expires_at,
        created_at=g.created_at,
        url=grant_url(g.event_id, g.token),
    )

# --- 1) Event owner/admin shares the check-in dashboard with door staff
@router.post("/events/{event_id}/access-grants", response_model=GrantRead, status_code=201)
async def create_grant(
    payload: GrantCreate,
    event: Event = Depends(get_managed_event),
    claims: dict = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    grant = await generate_grant(
        db,
        event_id=event.id,
        granter_id=uuid.UUID(str(claims["sub"])),
        grantee_email=str(payload.grantee_email),
    )
    return _grant_read(grant)

@router.get("/events/{event_id}/access-grants", response_model=list[GrantRead])
async def grants_for_event(event: Event = Depends(get_managed_event), db: AsyncSession = Depends(get_db)):
    return [_grant_read(g) for g in await list_grants(db, event_id=event.id)]

# --- 2) Public: dashboard load checks its ?token= before rendering
@router.get("/access/validate", response_model=GrantValidation)
async def validate(
    token: str = Query(..., min_length=1),
    event_id: uuid.UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await validate_grant(db, token=token, event_id=event_id)
