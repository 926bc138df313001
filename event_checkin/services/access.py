from __future__ import annotations
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..core.config import get_settings
from ..models import AccessGrant
from ..schemas import GrantValidation

logger = logging.getLogger(__name__)
settings = get_settings()

# every failed check reports this same reason
INVALID_GRANT_REASON = "Access token is invalid or expired"

def _now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(dt: datetime) -> datetime:
    # some drivers hand back naive timestamps for timestamptz columns
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def make_grant_token() -> str:
    return secrets.token_urlsafe(32)

def grant_url(event_id: uuid.UUID, token: str) -> str:
    return f"{settings.dashboard_base_url.rstrip('/')}/dashboard/events/{event_id}/checkin?token={token}"

async def generate_grant(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    granter_id: uuid.UUID | None,
    grantee_email: str,
    ttl_hours: int | None = None,
) -> AccessGrant:
    grant = AccessGrant(
        token=make_grant_token(),
        event_id=event_id,
        grantee_email=grantee_email,
        granted_by=granter_id,
        expires_at=_now() + timedelta(hours=ttl_hours or settings.grant_ttl_hours),
    )
    db.add(grant)
    await db.commit()
    await db.refresh(grant)
    logger.info(f"Granted dashboard access for event {event_id} to {grantee_email}")
    return grant

async def validate_grant(
    db: AsyncSession,
    *,
    token: str | None,
    event_id: uuid.UUID,
    now: datetime | None = None,
) -> GrantValidation:
    """Check existence, event binding and expiry, in that order."""
    invalid = GrantValidation(valid=False, reason=INVALID_GRANT_REASON)
    if not token:
        return invalid
    grant = (await db.execute(select(AccessGrant).where(AccessGrant.token == token))).scalar_one_or_none()
    if grant is None:
        return invalid
    if grant.event_id != event_id:
        return invalid
    if not (now or _now()) < as_utc(grant.expires_at):
        return invalid
    return GrantValidation(valid=True)

async def list_grants(db: AsyncSession, *, event_id: uuid.UUID) -> list[AccessGrant]:
    rows = (await db.execute(
        select(AccessGrant).where(AccessGrant.event_id == event_id).order_by(AccessGrant.created_at.desc())
    )).scalars().all()
    return list(rows)
