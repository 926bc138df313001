import json
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from event_checkin.core.nats import parse_servers, subscribe_checkins
from event_checkin.station.feed import RosterFeed

EVENT_ID = uuid.uuid4()


def test_parse_servers():
    assert parse_servers("nats://a:4222, nats://b:4222,,") == ["nats://a:4222", "nats://b:4222"]


async def test_subscription_filters_by_event_and_drops_malformed():
    nc = MagicMock()
    nc.subscribe = AsyncMock(return_value=MagicMock())
    received = []

    async def on_checkin(evt):
        received.append(evt)

    await subscribe_checkins(nc, "checkins.recorded", on_checkin, event_id=str(EVENT_ID))
    handler = nc.subscribe.await_args.kwargs["cb"]

    await handler(SimpleNamespace(subject="checkins.recorded", data=json.dumps({"event_id": str(EVENT_ID), "name": "A"}).encode()))
    await handler(SimpleNamespace(subject="checkins.recorded", data=json.dumps({"event_id": str(uuid.uuid4())}).encode()))
    await handler(SimpleNamespace(subject="checkins.recorded", data=b"{not json"))

    assert received == [{"event_id": str(EVENT_ID), "name": "A"}]


async def test_feed_unsubscribes_and_closes_on_exit(monkeypatch):
    sub = MagicMock()
    sub.unsubscribe = AsyncMock()
    nc = MagicMock()
    nc.connect = AsyncMock()
    nc.close = AsyncMock()
    nc.subscribe = AsyncMock(return_value=sub)
    monkeypatch.setattr("event_checkin.station.feed.NATS", lambda: nc)

    async with RosterFeed("nats://a:4222", event_id=EVENT_ID, on_checkin=AsyncMock()):
        nc.connect.assert_awaited_once_with(servers=["nats://a:4222"])
        assert nc.subscribe.await_args.args[0] == "checkins.recorded"

    sub.unsubscribe.assert_awaited_once()
    nc.close.assert_awaited_once()
