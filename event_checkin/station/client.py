from __future__ import annotations
import logging
from uuid import UUID

import httpx
from pydantic import ValidationError

from ..schemas import CheckInResult

logger = logging.getLogger(__name__)

class CheckInTransientError(RuntimeError):
    """Network failure or store unavailability; the scan may be retried."""

class CheckInRejected(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail

class MalformedCheckInResponse(RuntimeError):
    pass

RETRYABLE_STATUS = (429, 502, 503, 504)

class CheckInClient:
    """HTTP client for ``POST /checkin``. Use as an async context manager."""

    def __init__(
        self,
        base_url: str,
        *,
        bearer_token: str | None = None,
        access_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        if access_token:
            headers["X-Access-Token"] = access_token
        self._http = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "CheckInClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def check_in(self, *, event_id: UUID, user_id: UUID) -> CheckInResult:
        try:
            r = await self._http.post("/checkin", json={"event_id": str(event_id), "user_id": str(user_id)})
        except httpx.TransportError as e:
            logger.warning(f"Check-in request failed: {e}")
            raise CheckInTransientError(str(e)) from e

        if r.status_code in RETRYABLE_STATUS or r.status_code >= 500:
            raise CheckInTransientError(f"Check-in service returned {r.status_code}")
        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = None
            detail = (body.get("detail") if isinstance(body, dict) else None) or r.reason_phrase
            raise CheckInRejected(r.status_code, str(detail))
        try:
            return CheckInResult.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise MalformedCheckInResponse(f"Unexpected check-in response: {e}") from e
