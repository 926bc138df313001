from __future__ import annotations
from typing import Annotated, Literal
from pydantic import BaseModel, EmailStr, Field
from uuid import UUID
from datetime import datetime

Str255 = Annotated[str, Field(min_length=1, max_length=255)]
OptStr255 = Annotated[str | None, Field(max_length=255)]

CheckInOutcome = Literal["checked_in", "already_checked_in", "not_found"]
RosterFilter = Literal["all", "checked-in", "pending"]

# ---- Check-in ----
class CheckInRequest(BaseModel):
    event_id: UUID
    user_id: UUID  # attendee identifier from the ticket payload

class CheckInData(BaseModel):
    name: str
    email: str
    checked_in_at: datetime | None = None

class CheckInResult(BaseModel):
    success: bool
    message: str
    outcome: CheckInOutcome
    data: CheckInData | None = None

# ---- Roster ----
class RegistrationRead(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID | None = None
    name: str
    email: str
    phone: str | None = None
    organisation: str | None = None
    ticket_code: str
    checked_in: bool
    checked_in_at: datetime | None = None
    payment_status: str
    created_at: datetime

    model_config = {"from_attributes": True}

class RosterStats(BaseModel):
    event_id: UUID
    total: int
    checked_in: int
    pending: int
    check_in_rate: int  # whole percent

# ---- Access grants ----
class GrantCreate(BaseModel):
    grantee_email: EmailStr

class GrantRead(BaseModel):
    token: str
    event_id: UUID
    grantee_email: str
    granted_by: UUID | None = None
    expires_at: datetime
    created_at: datetime
    url: str

class GrantValidation(BaseModel):
    valid: bool
    reason: str | None = None

# ---- Registration & tickets ----
class RegistrationCreate(BaseModel):
    name: Str255
    email: EmailStr
    phone: Annotated[str | None, Field(max_length=32)] = None
    organisation: OptStr255 = None
    order_id: Annotated[str | None, Field(max_length=64)] = None  # required for paid events

class TicketRead(BaseModel):
    ticket_number: str
    event_id: UUID
    registration_id: UUID
    user_id: UUID | None = None
    qr_code_data: str
    issued_at: datetime

    model_config = {"from_attributes": True}

# ---- Payments ----
class OrderCreate(BaseModel):
    amount: float | str | None = None  # smallest currency unit (paise); checked by the route
    currency: str = "INR"
    receipt: str | None = None

class OrderRead(BaseModel):
    order_id: str
    amount: int
    currency: str
    status: str
    receipt: str | None = None

class PaymentVerify(BaseModel):
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None

class PaymentVerifyResult(BaseModel):
    verified: bool
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    message: str | None = None
    warning: str | None = None
    error: str | None = None
