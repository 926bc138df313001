from __future__ import annotations
import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from uuid import UUID

import click
from rich.console import Console

from .camera import Camera, choose_camera_index
from .client import CheckInClient
from .config import StationSettings
from .controller import ScanStation, State, StatusReport
from .decoder import DecoderInitError, QRDecoder
from .feed import RosterFeed

console = Console()

SEVERITY_STYLE = {"success": "green", "warning": "yellow", "error": "red"}

def print_report(report: StatusReport) -> None:
    style = SEVERITY_STYLE[report.severity]
    line = f"[{style}]{report.message}[/]"
    if report.data is not None:
        line += f"  [cyan]{report.data.name}[/] <{report.data.email}>"
        if report.data.checked_in_at:
            line += f"  at {report.data.checked_in_at:%H:%M:%S}"
    if report.retryable:
        line += "  [dim](retry the scan)[/]"
    console.print(line)

def _client(settings: StationSettings) -> CheckInClient:
    return CheckInClient(
        settings.api_base_url,
        bearer_token=settings.bearer_token,
        access_token=settings.access_token,
        timeout=settings.request_timeout,
    )

def _station(settings: StationSettings, client: CheckInClient, **kwargs) -> ScanStation:
    return ScanStation(
        event_id=settings.event_id,
        client=client,
        reporter=print_report,
        cooldown_seconds=settings.cooldown_seconds,
        fps=settings.fps,
        **kwargs,
    )

async def _on_remote_checkin(evt: dict) -> None:
    console.print(f"[dim]Checked in elsewhere:[/] {evt.get('name') or evt.get('user_id')}")

async def _run_scan(settings: StationSettings) -> State:
    index = choose_camera_index(settings)
    async with AsyncExitStack() as stack:
        client = await stack.enter_async_context(_client(settings))
        if settings.nats_urls:
            try:
                await stack.enter_async_context(RosterFeed(
                    settings.nats_urls,
                    event_id=settings.event_id,
                    on_checkin=_on_remote_checkin,
                    subject=settings.nats_subject_checkin,
                ))
            except Exception as e:
                console.print(f"[yellow]Live roster feed unavailable[/]: {e}")
        station = _station(settings, client, camera_factory=lambda: Camera(index))
        console.print(f"Scanning for event [cyan]{settings.event_id}[/] on camera {index}. Ctrl+C to stop.")
        return await station.run()

async def _run_scan_image(settings: StationSettings, decoder: QRDecoder, path: str) -> bool:
    text = decoder.decode_image_file(path)
    if not text:
        console.print("[red]No QR code found in image[/]")
        return False
    async with _client(settings) as client:
        await _station(settings, client).submit(text)
    return True

@click.group(help="Event check-in scan station")
@click.option("--event-id", type=click.UUID, default=None, help="Event to check attendees into (STATION_EVENT_ID)")
@click.option("--api-base", default=None, help="Check-in service base URL (STATION_API_BASE_URL)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, event_id: UUID | None, api_base: str | None, verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = StationSettings()
    updates = {}
    if event_id is not None:
        updates["event_id"] = event_id
    if api_base:
        updates["api_base_url"] = api_base
    if updates:
        settings = settings.model_copy(update=updates)
    if settings.event_id is None:
        raise click.UsageError("An event id is required (--event-id or STATION_EVENT_ID)")
    if not (settings.bearer_token or settings.access_token):
        console.print("[yellow]No STATION_BEARER_TOKEN or STATION_ACCESS_TOKEN set; check-ins will be refused[/]")
    ctx.obj = settings

@cli.command(help="Scan tickets from the camera until interrupted")
@click.pass_obj
def scan(settings: StationSettings):
    try:
        final = asyncio.run(_run_scan(settings))
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/]")
        return
    if final is State.FAILED:
        sys.exit(1)

@cli.command(name="scan-image", help="Decode a ticket QR code from an image file and check it in")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def scan_image(settings: StationSettings, path: str):
    try:
        decoder = QRDecoder()
    except DecoderInitError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)
    try:
        found = asyncio.run(_run_scan_image(settings, decoder, path))
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)
    if not found:
        sys.exit(1)
