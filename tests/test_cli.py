import uuid

import httpx
from click.testing import CliRunner

from event_checkin.core.qr import encode_ticket_payload, render_qr_png
from event_checkin.station import cli as station_cli
from event_checkin.station.client import CheckInClient

EVENT_ID = uuid.UUID("3f2b8a4e-9c1d-4e5f-8a7b-6c5d4e3f2a1b")
USER_ID = uuid.UUID("7a6b5c4d-3e2f-4a1b-9c8d-7e6f5a4b3c2d")


def _ticket(tmp_path, event_id=EVENT_ID):
    path = tmp_path / "ticket.png"
    path.write_bytes(render_qr_png(encode_ticket_payload(event_id=event_id, user_id=USER_ID)))
    return str(path)


def _fake_service(monkeypatch, calls):
    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={
            "success": True,
            "message": "Check-in successful",
            "outcome": "checked_in",
            "data": {"name": "Jaya Pillai", "email": "jaya@example.com", "checked_in_at": "2026-04-02T10:15:00Z"},
        })

    monkeypatch.setattr(
        station_cli,
        "_client",
        lambda settings: CheckInClient(settings.api_base_url, transport=httpx.MockTransport(handler)),
    )


def test_event_id_required(tmp_path, monkeypatch):
    monkeypatch.delenv("STATION_EVENT_ID", raising=False)
    result = CliRunner().invoke(station_cli.cli, ["scan-image", _ticket(tmp_path)])
    assert result.exit_code == 2
    assert "event id is required" in result.output


def test_scan_image_checks_in(tmp_path, monkeypatch):
    calls = []
    _fake_service(monkeypatch, calls)
    result = CliRunner().invoke(station_cli.cli, ["--event-id", str(EVENT_ID), "scan-image", _ticket(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Check-in successful" in result.output
    assert "Jaya Pillai" in result.output
    assert len(calls) == 1


def test_scan_image_for_other_event_makes_no_request(tmp_path, monkeypatch):
    calls = []
    _fake_service(monkeypatch, calls)
    path = _ticket(tmp_path, event_id=uuid.uuid4())
    result = CliRunner().invoke(station_cli.cli, ["--event-id", str(EVENT_ID), "scan-image", path])
    assert "Ticket is for a different event" in result.output
    assert calls == []


def test_scan_image_without_qr(tmp_path, monkeypatch):
    import cv2
    import numpy as np

    path = tmp_path / "blank.png"
    cv2.imwrite(str(path), np.full((100, 100, 3), 255, dtype=np.uint8))
    result = CliRunner().invoke(station_cli.cli, ["--event-id", str(EVENT_ID), "scan-image", str(path)])
    assert result.exit_code == 1
    assert "No QR code found" in result.output
