"""
Scan station controller.

The station cycles ``Idle -> Capturing -> Decoding -> (Dispatching | Cooldown)
-> Capturing`` until stopped. A decoded string is accepted only when no
dispatch is outstanding and the cooldown since the previous accepted decode has
elapsed; accepted decodes that fail to parse, or that belong to another event,
are reported to the operator without a network call. Dispatches run as
background tasks so frame capture continues while the check-in request is in
flight.
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Literal
from uuid import UUID

from ..core.qr import InvalidTicketPayload, TicketPayload, parse_ticket_payload
from ..schemas import CheckInData, CheckInResult
from .camera import Camera, CameraUnavailable
from .client import CheckInClient, CheckInRejected, CheckInTransientError, MalformedCheckInResponse
from .decoder import DecoderInitError, QRDecoder

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 2.0
DIFFERENT_EVENT_MESSAGE = "Ticket is for a different event"
TRANSIENT_MESSAGE = "Check-in temporarily unavailable, try again"
CAMERA_FAILED_MESSAGE = "Failed to access camera. Please check permissions."
CAMERA_LOST_MESSAGE = "Camera stopped delivering frames"
DEFAULT_MAX_FAILED_READS = 50

Severity = Literal["success", "warning", "error"]

class State(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DECODING = "decoding"
    DISPATCHING = "dispatching"
    COOLDOWN = "cooldown"
    FAILED = "failed"
    STOPPED = "stopped"

@dataclass(frozen=True)
class StatusReport:
    severity: Severity
    message: str
    data: CheckInData | None = None
    retryable: bool = False

def report_for_result(result: CheckInResult) -> StatusReport:
    if result.success:
        return StatusReport("success", result.message, result.data)
    if result.outcome == "already_checked_in":
        return StatusReport("warning", result.message, result.data)
    return StatusReport("error", result.message, result.data)

class ScanStation:
    def __init__(
        self,
        *,
        event_id: UUID,
        client: CheckInClient,
        reporter: Callable[[StatusReport], None],
        camera_factory: Callable[[], Camera] | None = None,
        decoder_factory: Callable[[], QRDecoder] = QRDecoder,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        fps: float = 15.0,
        max_failed_reads: int = DEFAULT_MAX_FAILED_READS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.event_id = event_id
        self._client = client
        self._reporter = reporter
        self._camera_factory = camera_factory
        self._decoder_factory = decoder_factory
        self._cooldown = cooldown_seconds
        self._frame_interval = 1.0 / fps
        self._max_failed_reads = max_failed_reads
        self._clock = clock

        self._phase = State.IDLE
        self._terminal: State | None = None
        self._last_accepted: float | None = None
        self._inflight: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._stopping = False

    # ---- state ----
    @property
    def state(self) -> State:
        if self._terminal is not None:
            return self._terminal
        if self.dispatch_in_flight:
            return State.DISPATCHING
        if self.in_cooldown:
            return State.COOLDOWN
        return self._phase

    @property
    def dispatch_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def in_cooldown(self) -> bool:
        return self._last_accepted is not None and (self._clock() - self._last_accepted) < self._cooldown

    def _report(self, report: StatusReport) -> None:
        log = logger.info if report.severity == "success" else logger.warning
        log(f"[{report.severity}] {report.message}")
        self._reporter(report)

    def _fail(self, message: str) -> None:
        self._terminal = State.FAILED
        self._report(StatusReport("error", message))

    # ---- decode handling ----
    def accept_decode(self) -> bool:
        """Admit a decode unless a dispatch is outstanding or the cooldown is running."""
        if self.dispatch_in_flight or self.in_cooldown:
            return False
        self._last_accepted = self._clock()
        return True

    async def handle_decode(self, text: str) -> asyncio.Task | None:
        """Parse an accepted decode and start its dispatch. Returns the dispatch task, if any."""
        if self._terminal is not None or not self.accept_decode():
            return None
        try:
            payload = parse_ticket_payload(text)
        except InvalidTicketPayload as e:
            logger.debug(f"Rejected QR payload: {e.reason}")
            self._report(StatusReport("error", e.operator_message))
            return None
        if payload.event_id != self.event_id:
            self._report(StatusReport("error", DIFFERENT_EVENT_MESSAGE))
            return None

        task = asyncio.create_task(self._dispatch(payload))
        self._inflight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def submit(self, text: str) -> None:
        """Handle one decode and wait for its dispatch to finish."""
        task = await self.handle_decode(text)
        if task is not None:
            await task

    async def _dispatch(self, payload: TicketPayload) -> None:
        try:
            result = await self._client.check_in(event_id=payload.event_id, user_id=payload.user_id)
        except CheckInTransientError:
            self._report(StatusReport("error", TRANSIENT_MESSAGE, retryable=True))
        except CheckInRejected as e:
            self._report(StatusReport("error", e.detail))
        except MalformedCheckInResponse as e:
            logger.error(str(e))
            self._report(StatusReport("error", "Unexpected response from the check-in service"))
        else:
            self._report(report_for_result(result))

    # ---- capture loop ----
    async def run(self) -> State:
        """Drive the camera until stop() or a terminal failure. Returns the final state."""
        if self._camera_factory is None:
            raise ValueError("camera_factory is required to run the capture loop")
        try:
            decoder = self._decoder_factory()
        except DecoderInitError as e:
            self._fail(str(e))
            return self.state

        try:
            async with self._camera_factory() as camera:
                self._phase = State.CAPTURING
                failed_reads = 0
                while not self._stopping:
                    frame = await camera.read()
                    if frame is None:
                        failed_reads += 1
                        if failed_reads >= self._max_failed_reads:
                            logger.error(f"No frames after {failed_reads} consecutive reads")
                            self._fail(CAMERA_LOST_MESSAGE)
                            break
                    else:
                        failed_reads = 0
                        self._phase = State.DECODING
                        text = await asyncio.to_thread(decoder.decode, frame)
                        self._phase = State.CAPTURING
                        if text:
                            await self.handle_decode(text)
                    await asyncio.sleep(self._frame_interval)
        except CameraUnavailable as e:
            logger.error(f"Camera unavailable: {e}")
            self._fail(CAMERA_FAILED_MESSAGE)
        finally:
            await self.drain()
            if self._terminal is None:
                self._terminal = State.STOPPED
        return self.state

    def stop(self) -> None:
        """Stop capturing after the current frame; in-flight dispatches still complete."""
        self._stopping = True

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
