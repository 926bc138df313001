from __future__ import annotations
import logging
import uuid
from datetime import datetime, timezone
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, or_, select, update
from ..models import Registration
from ..schemas import CheckInData, CheckInResult

logger = logging.getLogger(__name__)

INVALID_TICKET_MESSAGE = "Invalid ticket"
ALREADY_CHECKED_IN_MESSAGE = "Attendee already checked in"
CHECKED_IN_MESSAGE = "Check-in successful"

class CheckInUnavailable(RuntimeError):
    """The registration store could not be reached; the scan must be retried."""

def _now():
    return datetime.now(timezone.utc)

def _attendee_matches(user_id: uuid.UUID):
    # account holders match on user_id; guest tickets carry the registration id
    return or_(
        Registration.user_id == user_id,
        and_(Registration.user_id.is_(None), Registration.id == user_id),
    )

async def check_in(
    db: AsyncSession,
    *,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    scanned_by: uuid.UUID | None = None,
) -> CheckInResult:
    """
    Flip a registration to checked-in at most once.

    The transition is a single conditional UPDATE evaluated by the store, so
    concurrent scans of one ticket produce exactly one success; every other
    caller observes the already-checked-in outcome with the winner's timestamp.
    """
    stmt = (
        update(Registration)
        .where(
            Registration.event_id == event_id,
            _attendee_matches(user_id),
            Registration.checked_in.is_(False),
        )
        .values(checked_in=True, checked_in_at=_now(), checked_in_by=scanned_by)
        .returning(Registration.name, Registration.email, Registration.checked_in_at)
        .execution_options(synchronize_session=False)
    )
    try:
        row = (await db.execute(stmt)).first()
        await db.commit()
        if row is not None:
            logger.info(f"Checked in attendee {user_id} for event {event_id}")
            return CheckInResult(
                success=True,
                message=CHECKED_IN_MESSAGE,
                outcome="checked_in",
                data=CheckInData(name=row.name, email=row.email, checked_in_at=row.checked_in_at),
            )

        existing = (await db.execute(
            select(Registration)
            .where(Registration.event_id == event_id, _attendee_matches(user_id))
            .execution_options(populate_existing=True)
        )).scalars().first()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Check-in store failure for event {event_id}: {e}")
        raise CheckInUnavailable("registration store unavailable") from e

    if existing is None:
        logger.info(f"Rejected unknown ticket {user_id} for event {event_id}")
        return CheckInResult(success=False, message=INVALID_TICKET_MESSAGE, outcome="not_found")

    return CheckInResult(
        success=False,
        message=ALREADY_CHECKED_IN_MESSAGE,
        outcome="already_checked_in",
        data=CheckInData(name=existing.name, email=existing.email, checked_in_at=existing.checked_in_at),
    )
