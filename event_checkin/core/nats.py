from __future__ import annotations
import json
import logging
from typing import Awaitable, Callable, Sequence
from nats.aio.client import Client as NATS
from nats.aio.subscription import Subscription
from .config import get_settings

logger = logging.getLogger(__name__)

_nats = NATS()

def parse_servers(urls: str) -> list[str]:
    return [u.strip() for u in urls.split(",") if u.strip()]

async def nats_connect():
    if not _nats.is_connected:
        servers: Sequence[str] = parse_servers(get_settings().nats_urls)
        await _nats.connect(servers=servers)

async def nats_close():
    try:
        if _nats.is_connected:
            await _nats.drain()
    except Exception as e:
        logger.warning(f"NATS drain failed: {e}")

async def publish_checkin(evt: dict):
    """
    evt = {
      "event_id": str,
      "user_id": str,
      "name": str,
      "checked_in_at": iso8601,
      "scanned_by": str | None,
      "idempotency_key": "event_id:user_id"
    }
    """
    settings = get_settings()
    if not settings.publish_checkins:
        return
    await nats_connect()
    await _nats.publish(settings.nats_subject_checkin, json.dumps(evt).encode("utf-8"))

async def subscribe_checkins(
    nc: NATS,
    subject: str,
    cb: Callable[[dict], Awaitable[None]],
    *,
    event_id: str | None = None,
) -> Subscription:
    """
    Subscribe to check-in events and invoke cb(evt_dict), optionally only for one event.
    The caller owns the returned subscription and must unsubscribe on teardown.
    """
    async def _handler(msg):
        try:
            data = json.loads(msg.data)
        except ValueError:
            logger.warning(f"Dropping malformed check-in event on {msg.subject}")
            return
        if event_id and data.get("event_id") != event_id:
            return
        await cb(data)
    return await nc.subscribe(subject, cb=_handler)
