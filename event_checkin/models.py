from __future__ import annotations
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from sqlalchemy.orm import declarative_base, Mapped, mapped_column, relationship
from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.types import Boolean, DateTime, Numeric, String, Text

Base = declarative_base()

def utcnow():
    return datetime.now(timezone.utc)

class PaymentStatus(str, Enum):
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    SUCCESS = "success"

class Event(Base):
    __tablename__ = "events"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    location: Mapped[str | None] = mapped_column(String(255))
    organizer_name: Mapped[str | None] = mapped_column(String(255))
    ticket_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    registrations: Mapped[list["Registration"]] = relationship(back_populates="event")

    @property
    def is_paid(self) -> bool:
        return (self.ticket_price or 0) > 0

class Registration(Base):
    __tablename__ = "registrations"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)  # None for guest registrations
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    organisation: Mapped[str | None] = mapped_column(String(255))
    ticket_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    checked_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_in_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)  # None for token-delegated scans

    payment_status: Mapped[str] = mapped_column(String(16), default=PaymentStatus.NOT_REQUIRED.value, nullable=False)
    payment_provider: Mapped[str | None] = mapped_column(String(32))
    payment_order_id: Mapped[str | None] = mapped_column(String(64), index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64))
    payment_signature: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    event: Mapped[Event] = relationship(back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),
        CheckConstraint(
            "(checked_in AND checked_in_at IS NOT NULL) OR (NOT checked_in AND checked_in_at IS NULL)",
            name="ck_registration_checked_in_at",
        ),
        Index("ix_registrations_event_user", "event_id", "user_id"),
        Index("ix_registrations_event_created", "event_id", "created_at"),
    )

class DigitalTicket(Base):
    __tablename__ = "digital_tickets"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    registration_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, unique=True)
    event_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    ticket_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    qr_code_data: Mapped[str] = mapped_column(Text, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class AccessGrant(Base):
    __tablename__ = "event_dashboard_access"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    event_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    grantee_email: Mapped[str] = mapped_column(String(320), nullable=False)
    granted_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_access_token_event", "token", "event_id"),
    )
