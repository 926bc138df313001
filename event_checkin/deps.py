from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, AsyncGenerator
from fastapi import Depends, Header, HTTPException, status
import time
import uuid
import httpx
import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .db import get_session
from .core.config import get_settings
from .models import Event
from .services.access import validate_grant

settings = get_settings()

MANAGER_ROLES = ("admin", "organiser")

_JWKS: Dict[str, Any] | None = None
_JWKS_TS: float = 0.0
_JWKS_TTL: int = 3600

async def fetch_jwks() -> Dict[str, Any]:
    global _JWKS, _JWKS_TS
    now = time.time()
    if _JWKS is None or (now - _JWKS_TS) > _JWKS_TTL:
        async with httpx.AsyncClient() as client:
            r = await client.get(settings.auth_jwks_url, timeout=5.0)
            r.raise_for_status()
            _JWKS = r.json()
            _JWKS_TS = now
    return _JWKS

async def get_signing_key():
    from jwt.algorithms import RSAAlgorithm
    jwks = await fetch_jwks()
    key = jwks["keys"][0]
    return RSAAlgorithm.from_jwk(key)

async def get_claims(authorization: str | None = Header(default=None)) -> Dict[str, Any]:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.split(" ", 1)[1].strip()
    key = await get_signing_key()
    try:
        payload = jwt.decode(
            token,
            key=key,
            algorithms=["RS256"],
            issuer=settings.token_issuer,
            options={"verify_aud": False, "require": ["iss"]},
        )
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if "sub" not in payload or "role" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    try:
        uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return payload

async def get_optional_claims(authorization: str | None = Header(default=None)) -> Dict[str, Any] | None:
    if not authorization:
        return None
    return await get_claims(authorization)

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for s in get_session():
        yield s

# --- event access ---

@dataclass
class DashboardAccess:
    event: Event
    operator_id: uuid.UUID | None  # None when access comes from a delegated grant
    via_grant: bool = False

def can_manage_event(claims: Dict[str, Any], event: Event) -> bool:
    if claims.get("role") in MANAGER_ROLES:
        return True
    return event.created_by is not None and str(event.created_by) == str(claims.get("sub"))

async def get_event_or_404(db: AsyncSession, event_id: uuid.UUID) -> Event:
    event = (await db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event

async def resolve_dashboard_access(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    claims: Dict[str, Any] | None,
    access_token: str | None,
) -> DashboardAccess:
    event = await get_event_or_404(db, event_id)
    if access_token:
        grant = await validate_grant(db, token=access_token, event_id=event_id)
        if not grant.valid:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=grant.reason)
        return DashboardAccess(event=event, operator_id=None, via_grant=True)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    if not can_manage_event(claims, event):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have permission to access this dashboard")
    return DashboardAccess(event=event, operator_id=uuid.UUID(str(claims["sub"])))

async def get_dashboard_access(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    claims: Dict[str, Any] | None = Depends(get_optional_claims),
    x_access_token: str | None = Header(default=None),
) -> DashboardAccess:
    return await resolve_dashboard_access(db, event_id=event_id, claims=claims, access_token=x_access_token)

async def get_managed_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    claims: Dict[str, Any] = Depends(get_claims),
) -> Event:
    event = await get_event_or_404(db, event_id)
    if not can_manage_event(claims, event):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Event owner or admin required")
    return event
