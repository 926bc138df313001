"""
Ticket payload wire format and QR rendering.

A ticket QR code carries compact JSON:

    {"event_id": "<uuid>", "user_id": "<uuid>", "ticket_code": "TKT-...", "issued_at": "<iso8601>"}

``user_id`` is the attendee identifier: the linked account id, or the
registration id for guest registrations. The payload only locates a
registration; the store decides whether the ticket is valid.
"""
from __future__ import annotations
import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Any, Dict

import qrcode

INVALID_FORMAT_MESSAGE = "Invalid QR code format"

class InvalidTicketPayload(ValueError):
    """Scanned content is not a structurally valid ticket payload."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    @property
    def operator_message(self) -> str:
        return INVALID_FORMAT_MESSAGE

@dataclass(frozen=True)
class TicketPayload:
    event_id: uuid.UUID
    user_id: uuid.UUID
    ticket_code: str | None = None
    issued_at: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"event_id": str(self.event_id), "user_id": str(self.user_id)}
        if self.ticket_code:
            d["ticket_code"] = self.ticket_code
        if self.issued_at:
            d["issued_at"] = self.issued_at
        return d

def encode_ticket_payload(
    *, event_id: uuid.UUID, user_id: uuid.UUID, ticket_code: str | None = None, issued_at: datetime | None = None
) -> str:
    payload = TicketPayload(
        event_id=event_id,
        user_id=user_id,
        ticket_code=ticket_code,
        issued_at=issued_at.isoformat() if issued_at else None,
    )
    return json.dumps(payload.to_dict(), separators=(",", ":"), sort_keys=True)

def _uuid_claim(data: Dict[str, Any], key: str) -> uuid.UUID:
    raw = data.get(key)
    if not raw or not isinstance(raw, str):
        raise InvalidTicketPayload("missing claim: " + key)
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise InvalidTicketPayload("malformed claim: " + key)

def parse_ticket_payload(text: str | bytes | None) -> TicketPayload:
    # garbage and incomplete payloads share one rejection path
    if text is None:
        raise InvalidTicketPayload("empty payload")
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidTicketPayload("payload is not utf-8")
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        raise InvalidTicketPayload("payload is not JSON")
    if not isinstance(data, dict):
        raise InvalidTicketPayload("payload is not an object")

    event_id = _uuid_claim(data, "event_id")
    user_id = _uuid_claim(data, "user_id")
    ticket_code = data.get("ticket_code")
    issued_at = data.get("issued_at")
    return TicketPayload(
        event_id=event_id,
        user_id=user_id,
        ticket_code=ticket_code if isinstance(ticket_code, str) else None,
        issued_at=issued_at if isinstance(issued_at, str) else None,
    )

def render_qr_png(text: str, *, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    b = BytesIO()
    img.save(b, format="PNG")
    return b.getvalue()
