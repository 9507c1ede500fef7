"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from f1tv_dl.models.config import AppSettings
from f1tv_dl.models.stats import QueueStats
from f1tv_dl.utils.formatting import format_duration

SUGGESTIONS = {
    "AuthExhaustedError": [
        "• Log in to f1tv.formula1.com and save the entitlement token with `f1tv-dl download --token-file`.",
        "• Set F1TV_USER and F1TV_PASS (or username/password in the config file).",
        "• Run `f1tv-dl clear-cache` to discard a stale cached token.",
    ],
    "InvalidURLError": [
        "• URLs must look like https://f1tv.formula1.com/detail/<id>/<name>.",
    ],
    "RateLimitedError": [
        "• F1TV is throttling requests. Wait a few minutes and try again.",
        "• Use `--parallel 1` and a larger `--delay`.",
    ],
    "TrackNotFoundError": [
        "• Check the channel name, driver number or driver code.",
        "• Use `--video-size best` or a resolution the stream offers.",
    ],
    "UnsupportedContentError": [
        "• International commentary is only available for live race sessions.",
    ],
    "MuxerFailureError": [
        "• Run with -vv to see the full ffmpeg command line.",
        "• Make sure your ffmpeg build supports HLS and DASH inputs.",
    ],
    "ConfigurationError": [
        "• Run `f1tv-dl validate` to check your configuration file.",
        "• Make sure ffmpeg is installed and on your PATH.",
    ],
    "TransientTransportError": [
        "• A network connection issue occurred.",
        "• The F1TV API might be temporarily unavailable. Try again later.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    suggestions = SUGGESTIONS.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(str(error))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "password" and value:
            value = "[hidden]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(settings: AppSettings):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    login = f"[green]{settings.username}[/green]" if settings.has_login else "[dim]not set[/dim]"
    table.add_row("Login:", login)
    if settings.has_login:
        table.add_row("", "[yellow]Automated login needs an acquirer plugin.[/yellow]")
    table.add_row("Audio:", settings.audio_stream)
    table.add_row("Video Size:", settings.video_size)
    table.add_row("Format:", settings.format)
    table.add_row("Output Directory:", settings.output_directory or "[dim]current directory[/dim]")
    table.add_row("Parallel Downloads:", str(settings.queue.max_concurrent))
    table.add_row("Delay:", f"{settings.queue.delay}s")
    table.add_row("Retries:", str(settings.queue.retry_attempts))
    table.add_row("Token Cache:", f"[dim]{settings.token_cache_path}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(stats: QueueStats, failures: list[tuple[str, str]] | None = None):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Completed:", f"[bold green]{stats.completed}[/bold green]")
    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")
    if stats.retries > 0:
        stats_table.add_row("↻ Retries:", f"[yellow]{stats.retries}[/yellow]")
    if stats.rate_limited > 0:
        stats_table.add_row("⚠ Rate Limited:", f"[yellow]{stats.rate_limited}[/yellow]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(stats.duration_seconds)}[/blue]"
    )
    stats_table.add_row("Peak Concurrent:", f"[green]{stats.peak_active}[/green]")

    for name, error in failures or []:
        stats_table.add_row(f"[red]{name}[/red]", f"[dim]{error}[/dim]")

    if stats.failed:
        title, border_color = "🏁 [bold]Finished with Errors[/bold]", "yellow"
    else:
        title, border_color = "🏁 [bold]Download Complete![/bold]", "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
