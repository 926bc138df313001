from datetime import datetime, timezone
from io import BytesIO

from openpyxl import load_workbook

from event_checkin.services.roster import (
    EXPORT_HEADERS,
    build_registrations_workbook,
    export_filename,
    list_registrations,
    roster_stats,
)


async def _seed(event, add_registration):
    await add_registration(event, name="Anita Desai", email="anita@example.com", phone="555-0101")
    await add_registration(
        event,
        name="Bharat Shah",
        email="bharat@corp.example",
        organisation="Corp",
        checked_in=True,
        checked_in_at=datetime(2026, 4, 2, 10, 15, tzinfo=timezone.utc),
    )
    await add_registration(event, guest=True, name="Chitra Nair", email="chitra@example.com")


class TestRosterQueries:
    async def test_search_covers_name_email_and_phone(self, db, event, add_registration):
        await _seed(event, add_registration)
        assert [r.name for r in await list_registrations(db, event_id=event.id, q="BHARAT")] == ["Bharat Shah"]
        assert [r.name for r in await list_registrations(db, event_id=event.id, q="corp.example")] == ["Bharat Shah"]
        assert [r.name for r in await list_registrations(db, event_id=event.id, q="0101")] == ["Anita Desai"]

    async def test_status_filter(self, db, event, add_registration):
        await _seed(event, add_registration)
        checked = await list_registrations(db, event_id=event.id, status="checked-in")
        pending = await list_registrations(db, event_id=event.id, status="pending")
        assert [r.name for r in checked] == ["Bharat Shah"]
        assert sorted(r.name for r in pending) == ["Anita Desai", "Chitra Nair"]
        assert len(await list_registrations(db, event_id=event.id)) == 3

    async def test_roster_is_scoped_to_event(self, db, event, other_event, add_registration):
        await _seed(event, add_registration)
        assert await list_registrations(db, event_id=other_event.id) == []

    async def test_stats(self, db, event, add_registration):
        await _seed(event, add_registration)
        stats = await roster_stats(db, event_id=event.id)
        assert (stats.total, stats.checked_in, stats.pending, stats.check_in_rate) == (3, 1, 2, 33)

    async def test_stats_for_empty_event(self, db, other_event):
        stats = await roster_stats(db, event_id=other_event.id)
        assert stats.total == 0
        assert stats.check_in_rate == 0


class TestExport:
    async def test_workbook_layout(self, db, event, add_registration):
        await _seed(event, add_registration)
        rows = await list_registrations(db, event_id=event.id)

        ws = load_workbook(BytesIO(build_registrations_workbook(rows))).active

        assert ws.title == "Event Registrations"
        assert [c.value for c in ws[1]] == EXPORT_HEADERS
        assert ws.cell(row=1, column=1).font.bold is True
        assert ws.max_row == 4
        by_name = {row[0]: row for row in ws.iter_rows(min_row=2, values_only=True)}
        assert by_name["Bharat Shah"][5] == "Checked In"
        assert by_name["Bharat Shah"][6] == "2026-04-02 10:15:00"
        assert by_name["Anita Desai"][3] == "N/A"
        assert by_name["Anita Desai"][5] == "Pending"
        assert by_name["Anita Desai"][6] == "N/A"

    def test_filename_replaces_non_alphanumerics(self):
        assert export_filename("Spring Gala 2026!") == "Spring_Gala_2026__checkin_dashboard.xlsx"
        assert export_filename("") == "event_checkin_dashboard.xlsx"
