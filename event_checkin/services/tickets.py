"""
Ticket issuing for new registrations.

A registration always gets exactly one digital ticket. The ticket's QR payload
names the event and the attendee identifier (account id, or the registration
id for guests) so the check-in desk can locate the registration directly.
"""
from __future__ import annotations
import logging
import secrets
import string
import time
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..core.qr import encode_ticket_payload
from ..models import DigitalTicket, Event, PaymentStatus, Registration, utcnow
from ..schemas import RegistrationCreate

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_MAX_CODE_ATTEMPTS = 5

class AlreadyRegistered(Exception):
    pass

class PaymentRequired(Exception):
    pass

def make_ticket_code() -> str:
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"TKT-{int(time.time() * 1000)}-{suffix}"

async def _unique_ticket_code(db: AsyncSession) -> str:
    for _ in range(_MAX_CODE_ATTEMPTS):
        code = make_ticket_code()
        taken = (await db.execute(select(Registration.id).where(Registration.ticket_code == code))).first()
        if taken is None:
            return code
    raise RuntimeError("could not allocate a unique ticket code")

def attendee_identifier(reg: Registration) -> uuid.UUID:
    return reg.user_id or reg.id

def build_ticket(reg: Registration) -> DigitalTicket:
    issued_at = utcnow()
    return DigitalTicket(
        registration_id=reg.id,
        event_id=reg.event_id,
        user_id=reg.user_id,
        ticket_number=reg.ticket_code,
        qr_code_data=encode_ticket_payload(
            event_id=reg.event_id,
            user_id=attendee_identifier(reg),
            ticket_code=reg.ticket_code,
            issued_at=issued_at,
        ),
        issued_at=issued_at,
    )

async def register_attendee(
    db: AsyncSession,
    *,
    event: Event,
    form: RegistrationCreate,
    user_id: uuid.UUID | None,
) -> tuple[Registration, DigitalTicket]:
    if user_id is not None:
        existing = (await db.execute(
            select(Registration.id).where(Registration.event_id == event.id, Registration.user_id == user_id)
        )).first()
        if existing is not None:
            raise AlreadyRegistered()

    if event.is_paid and not form.order_id:
        raise PaymentRequired()

    reg = Registration(
        id=uuid.uuid4(),
        event_id=event.id,
        user_id=user_id,
        name=form.name,
        email=str(form.email),
        phone=form.phone or None,
        organisation=form.organisation or None,
        ticket_code=await _unique_ticket_code(db),
    )
    if event.is_paid:
        reg.payment_order_id = form.order_id
        reg.payment_status = PaymentStatus.PENDING.value
        reg.payment_provider = "razorpay"

    ticket = build_ticket(reg)
    db.add(reg)
    db.add(ticket)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration by the same account
        await db.rollback()
        raise AlreadyRegistered()
    await db.refresh(reg)
    logger.info(f"Issued ticket {ticket.ticket_number} for event {event.id}")
    return reg, ticket

async def get_ticket_for_attendee(db: AsyncSession, *, event_id: uuid.UUID, user_id: uuid.UUID) -> DigitalTicket | None:
    return (await db.execute(
        select(DigitalTicket).where(DigitalTicket.event_id == event_id, DigitalTicket.user_id == user_id)
    )).scalar_one_or_none()
