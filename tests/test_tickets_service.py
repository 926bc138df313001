import re
import uuid
from decimal import Decimal

import pytest

from event_checkin.core.qr import parse_ticket_payload
from event_checkin.models import Event, PaymentStatus
from event_checkin.schemas import RegistrationCreate
from event_checkin.services.tickets import (
    AlreadyRegistered,
    PaymentRequired,
    get_ticket_for_attendee,
    make_ticket_code,
    register_attendee,
)

TICKET_CODE = re.compile(r"^TKT-\d{13}-[A-Z0-9]{6}$")


def test_ticket_code_format():
    assert TICKET_CODE.match(make_ticket_code())


@pytest.fixture
def form():
    return RegistrationCreate(name="Ravi Kumar", email="ravi@example.com", phone="+91 98765 43210", organisation="ACME")


class TestRegisterAttendee:
    async def test_registration_issues_ticket_payload_for_attendee(self, db, event, form):
        user_id = uuid.uuid4()
        reg, ticket = await register_attendee(db, event=event, form=form, user_id=user_id)

        assert TICKET_CODE.match(reg.ticket_code)
        assert ticket.ticket_number == reg.ticket_code
        assert reg.payment_status == PaymentStatus.NOT_REQUIRED.value
        payload = parse_ticket_payload(ticket.qr_code_data)
        assert (payload.event_id, payload.user_id) == (event.id, user_id)
        assert payload.ticket_code == reg.ticket_code

        assert (await get_ticket_for_attendee(db, event_id=event.id, user_id=user_id)).id == ticket.id

    async def test_guest_ticket_carries_registration_id(self, db, event, form):
        reg, ticket = await register_attendee(db, event=event, form=form, user_id=None)
        assert reg.user_id is None
        assert parse_ticket_payload(ticket.qr_code_data).user_id == reg.id

    async def test_duplicate_registration_rejected(self, db, event, form):
        user_id = uuid.uuid4()
        await register_attendee(db, event=event, form=form, user_id=user_id)
        with pytest.raises(AlreadyRegistered):
            await register_attendee(db, event=event, form=form, user_id=user_id)

    async def test_paid_event_requires_order(self, db, form):
        paid = Event(id=uuid.uuid4(), title="Workshop", ticket_price=Decimal("499.00"))
        db.add(paid)
        await db.commit()
        with pytest.raises(PaymentRequired):
            await register_attendee(db, event=paid, form=form, user_id=uuid.uuid4())

    async def test_paid_registration_is_pending_payment(self, db, form):
        paid = Event(id=uuid.uuid4(), title="Workshop", ticket_price=Decimal("499.00"))
        db.add(paid)
        await db.commit()
        form = form.model_copy(update={"order_id": "order_ABC123"})
        reg, _ = await register_attendee(db, event=paid, form=form, user_id=uuid.uuid4())
        assert reg.payment_status == PaymentStatus.PENDING.value
        assert reg.payment_order_id == "order_ABC123"
        assert reg.payment_provider == "razorpay"
