from __future__ import annotations
import logging
from typing import Awaitable, Callable
from uuid import UUID

from nats.aio.client import Client as NATS
from nats.aio.subscription import Subscription

from ..core.nats import parse_servers, subscribe_checkins

logger = logging.getLogger(__name__)

class RosterFeed:
    """
    Live check-in notifications for one event. The subscription is registered
    on enter and unregistered on exit.
    """

    def __init__(
        self,
        servers: str,
        *,
        event_id: UUID,
        on_checkin: Callable[[dict], Awaitable[None]],
        subject: str = "checkins.recorded",
    ):
        self._servers = parse_servers(servers)
        self._event_id = str(event_id)
        self._on_checkin = on_checkin
        self._subject = subject
        self._nc = NATS()
        self._sub: Subscription | None = None

    async def __aenter__(self) -> "RosterFeed":
        await self._nc.connect(servers=self._servers)
        self._sub = await subscribe_checkins(self._nc, self._subject, self._on_checkin, event_id=self._event_id)
        logger.info(f"Subscribed to {self._subject} for event {self._event_id}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self._sub is not None:
                await self._sub.unsubscribe()
                self._sub = None
        finally:
            await self._nc.close()
