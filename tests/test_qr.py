import json
import uuid
from datetime import datetime, timezone

import pytest

from event_checkin.core.qr import (
    INVALID_FORMAT_MESSAGE,
    InvalidTicketPayload,
    TicketPayload,
    encode_ticket_payload,
    parse_ticket_payload,
    render_qr_png,
)

EVENT_ID = uuid.UUID("3f2b8a4e-9c1d-4e5f-8a7b-6c5d4e3f2a1b")
USER_ID = uuid.UUID("7a6b5c4d-3e2f-4a1b-9c8d-7e6f5a4b3c2d")


class TestEncode:
    def test_payload_is_compact_json_with_ids(self):
        text = encode_ticket_payload(event_id=EVENT_ID, user_id=USER_ID)
        assert " " not in text
        assert json.loads(text) == {"event_id": str(EVENT_ID), "user_id": str(USER_ID)}

    def test_optional_fields_survive_parsing(self):
        issued = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        text = encode_ticket_payload(
            event_id=EVENT_ID, user_id=USER_ID, ticket_code="TKT-1-ABC123", issued_at=issued
        )
        parsed = parse_ticket_payload(text)
        assert parsed == TicketPayload(
            event_id=EVENT_ID, user_id=USER_ID, ticket_code="TKT-1-ABC123", issued_at=issued.isoformat()
        )

    def test_encoding_is_deterministic(self):
        a = encode_ticket_payload(event_id=EVENT_ID, user_id=USER_ID, ticket_code="TKT-1-X")
        b = encode_ticket_payload(event_id=EVENT_ID, user_id=USER_ID, ticket_code="TKT-1-X")
        assert a == b


class TestParse:
    def test_accepts_bytes(self):
        raw = json.dumps({"event_id": str(EVENT_ID), "user_id": str(USER_ID)}).encode()
        assert parse_ticket_payload(raw).user_id == USER_ID

    def test_ignores_unknown_keys(self):
        raw = json.dumps({"event_id": str(EVENT_ID), "user_id": str(USER_ID), "seat": "B12"})
        assert parse_ticket_payload(raw).event_id == EVENT_ID

    @pytest.mark.parametrize(
        "text",
        [
            None,
            "",
            "https://example.com/not-a-ticket",
            "[1, 2, 3]",
            '"just a string"',
            json.dumps({"event_id": str(EVENT_ID)}),
            json.dumps({"user_id": str(USER_ID)}),
            json.dumps({"event_id": str(EVENT_ID), "user_id": ""}),
            json.dumps({"event_id": str(EVENT_ID), "user_id": "U1"}),
            json.dumps({"event_id": 42, "user_id": str(USER_ID)}),
            b"\xff\xfe\x00",
        ],
    )
    def test_garbage_and_incomplete_payloads_share_one_rejection(self, text):
        with pytest.raises(InvalidTicketPayload) as exc:
            parse_ticket_payload(text)
        assert exc.value.operator_message == INVALID_FORMAT_MESSAGE == "Invalid QR code format"


def test_render_qr_png_returns_png_image():
    png = render_qr_png(encode_ticket_payload(event_id=EVENT_ID, user_id=USER_ID))
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
