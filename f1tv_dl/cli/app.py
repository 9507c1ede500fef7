"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from f1tv_dl import __version__
from f1tv_dl.api import F1TVAPIClient, F1TVContentResolver, TokenManager
from f1tv_dl.core.download_queue import DownloadQueue
from f1tv_dl.core.events import EventType, QueueEvent
from f1tv_dl.exceptions import ConfigurationError, F1tvDlError
from f1tv_dl.media import FFmpegMuxer
from f1tv_dl.models.config import AppSettings
from f1tv_dl.storage import ConfigManager, ManualTokenFile, TokenStore
from f1tv_dl.utils.formatting import mask_token
from f1tv_dl.utils.structured_logger import create_structured_logger

from .formatters import print_config, print_summary_panel, print_validation_table

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("f1tv_dl")

app = typer.Typer(
    name="f1tv-dl",
    help=(
        "Download F1TV sessions with ffmpeg, optionally adding international"
        " commentary as a second audio track."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "f1tv-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_settings(cli_options: Optional[dict] = None) -> AppSettings:
    settings = ConfigManager(CONFIG_FILE).load_settings(cli_options)
    if settings.debug:
        logging.getLogger("f1tv_dl").setLevel("DEBUG")
    return settings


def _build_token_manager(
    client: F1TVAPIClient, settings: AppSettings, token_file: Optional[Path] = None
) -> TokenManager:
    return TokenManager(
        checker=client,
        store=TokenStore(settings.token_cache_path),
        manual_file=ManualTokenFile(token_file or settings.manual_token_path),
        username=settings.username,
        password=settings.password,
    )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """F1TV Downloader CLI"""
    if version:
        console.print(f"[bold]f1tv-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 2:
        logging.getLogger("f1tv_dl").setLevel("DEBUG")

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


class ProgressReporter:
    """Logs muxer progress in coarse steps so the console stays readable."""

    def __init__(self, step: int = 5):
        self.step = step
        self._last: dict[str, int] = {}

    def __call__(self, event: QueueEvent) -> None:
        if event.type is not EventType.JOB_PROGRESS or event.job is None:
            return
        percent = event.data.get("percent", 0)
        last = self._last.get(event.job.id, -self.step)
        if percent <= last or (percent - last < self.step and percent < 100):
            return
        self._last[event.job.id] = percent
        log.info(
            f"[cyan]{event.job.name}[/cyan] Progress: {percent}% | "
            f"Frames: {event.data.get('frames', 0)} | FPS: {event.data.get('fps', 0)} | "
            f"Bitrate: {event.data.get('bitrate', 0)}kbps | "
            f"Time: {event.data.get('timemark') or '-'}"
        )


@app.command(name="download")
def download_command(
    urls: list[str] = typer.Argument(  # noqa: B008
        ..., help="One or more F1TV content URLs."
    ),
    channel: Optional[str] = typer.Option(
        None,
        "-c",
        "--channel",
        help="Channel to download: title, driver number, driver code or name.",
    ),
    audio: Optional[str] = typer.Option(
        None, "-a", "--audio", help="Primary audio language (default: eng)."
    ),
    intl_audio: Optional[str] = typer.Option(
        None,
        "-i",
        "--intl-audio",
        help="Add international commentary (eng, nld, deu, fra, por, spa, fx).",
    ),
    video_size: Optional[str] = typer.Option(
        None, "-s", "--video-size", help="'best' or WIDTHxHEIGHT, e.g. 1920x1080."
    ),
    fmt: Optional[str] = typer.Option(
        None, "-f", "--format", help="Output container: mp4 or ts."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "-o", "--output-dir", help="Directory to write downloads to."
    ),
    itsoffset: Optional[str] = typer.Option(
        None,
        "--itsoffset",
        help="Offset applied to the international feed, [-]hh:mm:ss.mmm.",
    ),
    parallel: Optional[int] = typer.Option(
        None, "-p", "--parallel", help="Simultaneous downloads (1-3, default 1)."
    ),
    delay: Optional[float] = typer.Option(
        None, "-d", "--delay", help="Seconds to wait between downloads."
    ),
    retries: Optional[int] = typer.Option(
        None, "-r", "--retries", help="Attempts per download before giving up."
    ),
    token_file: Optional[Path] = typer.Option(
        None, "--token-file", help="JSON file holding an F1TV entitlement_token."
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Write a JSON-lines event log to this directory."
    ),
):
    """Download one or more F1TV videos."""
    try:
        settings = _load_settings(
            {"parallel": parallel, "delay": delay, "retries": retries}
        )
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    job_defaults = {
        "channel": channel,
        "audio_stream": audio or settings.audio_stream,
        "international_audio": intl_audio,
        "video_size": video_size or settings.video_size,
        "format": fmt or settings.format,
        "output_directory": str(output_dir) if output_dir else settings.output_directory or None,
    }
    if itsoffset:
        job_defaults["itsoffset"] = itsoffset
    rejected: list[str] = []

    async def _download_async() -> DownloadQueue:
        async with F1TVAPIClient() as client:
            token_manager = _build_token_manager(client, settings, token_file)
            queue = DownloadQueue(
                F1TVContentResolver(client, token_manager),
                FFmpegMuxer(),
                settings.queue,
            )
            queue.events.subscribe(ProgressReporter())

            structured, job_events = create_structured_logger(log_dir, enable_json=bool(log_dir))
            job_events.attach(queue.events)
            try:
                for url in urls:
                    try:
                        queue.add_download({"url": url, **job_defaults})
                    except F1tvDlError as e:
                        log.error(f"[red]✗ {e}[/red]")
                        rejected.append(url)
                await queue.join()
            finally:
                job_events.detach()
                structured.close()
            return queue

    queue = asyncio.run(_download_async())

    print_summary_panel(queue.stats, [(job.name, job.last_error or "") for job in queue.failed])
    if queue.failed or rejected:
        raise typer.Exit(code=1)


@app.command()
def token(
    value: Optional[str] = typer.Argument(
        None, help="Save this entitlement token to the manual token file first."
    ),
    token_file: Optional[Path] = typer.Option(
        None, "--token-file", help="JSON file holding an F1TV entitlement_token."
    ),
):
    """Obtain a validated F1TV token and report where it came from."""
    settings = _load_settings()
    if value:
        ManualTokenFile(token_file or settings.manual_token_path).write(value)
        console.print("[green]✓ Token saved to the manual token file.[/green]")

    async def _token_async():
        async with F1TVAPIClient() as client:
            return await _build_token_manager(client, settings, token_file).get_valid_token()

    credential = asyncio.run(_token_async())
    console.print(
        f"[green]✓ Valid token[/green] from [cyan]{credential.source.value}[/cyan]: "
        f"[dim]{mask_token(credential.value)}[/dim]"
    )
    if credential.expires_at:
        remaining = int(credential.expires_at - credential.acquired_at)
        console.print(f"  Expires in about {remaining // 3600}h {remaining % 3600 // 60}m.")


@app.command(name="clear-cache")
def clear_cache(
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Remove the cached token and the manual token file."""
    if not force and not typer.confirm("Remove the cached F1TV token and manual token file?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    settings = _load_settings()
    removed = 0
    if TokenStore(settings.token_cache_path).clear():
        removed += 1
    if ManualTokenFile(settings.manual_token_path).clear():
        removed += 1
    console.print(f"[green]✓ Token cache cleared ({removed} file(s) removed).[/green]")


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        settings = _load_settings()
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_validation_table(settings)
    if shutil.which("ffmpeg"):
        console.print("[green]✓[/] ffmpeg found on PATH.")
    else:
        console.print("[red]✗ ffmpeg was not found on PATH.[/red]")
        raise typer.Exit(code=1)
