from __future__ import annotations
import logging
from typing import Any, Dict
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_optional_claims, resolve_dashboard_access
from ..schemas import CheckInRequest, CheckInResult
from ..services.checkins import CheckInUnavailable, check_in
from ..core.redis import allow_request
from ..core.nats import publish_checkin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkin", tags=["checkin"])

UNAVAILABLE_MESSAGE = "Check-in temporarily unavailable, try again"

def _unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=UNAVAILABLE_MESSAGE)

# Scan station dispatch: verify access, then hand the decoded ticket to the check-in authority.
# Semantic outcomes (checked in, duplicate, unknown ticket) are 200 with a structured body.
@router.post("", response_model=CheckInResult)
async def check_in_attendee(
    payload: CheckInRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    claims: Dict[str, Any] | None = Depends(get_optional_claims),
    x_access_token: str | None = Header(default=None),
):
    caller = request.client.host if request.client else "unknown"
    if not await allow_request(caller, "checkin.scan"):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")

    try:
        access = await resolve_dashboard_access(
            db, event_id=payload.event_id, claims=claims, access_token=x_access_token
        )
    except SQLAlchemyError as e:
        logger.error(f"Access lookup failed for event {payload.event_id}: {e}")
        raise _unavailable()

    try:
        result = await check_in(
            db,
            event_id=payload.event_id,
            user_id=payload.user_id,
            scanned_by=access.operator_id,
        )
    except CheckInUnavailable:
        raise _unavailable()

    if result.success:
        try:
            await publish_checkin({
                "event_id": str(payload.event_id),
                "user_id": str(payload.user_id),
                "name": result.data.name,
                "checked_in_at": result.data.checked_in_at.isoformat() if result.data.checked_in_at else None,
                "scanned_by": str(access.operator_id) if access.operator_id else None,
                "idempotency_key": f"{payload.event_id}:{payload.user_id}",
            })
        except Exception as e:
            # non-fatal for the check-in HTTP response
            logger.warning(f"Failed to publish check-in for event {payload.event_id}: {e}")

    return result
