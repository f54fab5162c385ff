"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bilifetch.models.media import DownloadResult, QualityInfo
from bilifetch.models.stats import DownloadStats
from bilifetch.storage.credentials import Account
from bilifetch.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationUnavailableError": [
            "• Check that the account exists in accounts.json in the cookie directory.",
            "• The cookie file may be missing or expired. Log in again to refresh it.",
            "• Pass an account explicitly with -a.",
        ],
        "PoolExhaustedError": [
            "• All browser instances are busy.",
            "• Increase `pool_size` or `checkout_timeout` in the configuration.",
        ],
        "ResolutionError": [
            "• The video offers no stream for the requested media type.",
            "• Try a different media type with -t or a lower quality with -q.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The platform API might be temporarily unavailable.",
            "• Your cookies may have expired. Log in again to refresh them.",
        ],
        "FilesystemError": [
            "• Check that the output directory is writable and has free space.",
        ],
        "RateLimitedError": [
            "• The same operation was requested too quickly. Wait a few seconds.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `bilifetch init --force` to write a fresh default file.",
        ],
        "InvalidVideoIdError": [
            "• Use a BV id (BV1xx411c7mD), an av id (av170001) or a video URL.",
        ],
        "TimeoutError": [
            "• A transfer timed out, which may indicate network throttling.",
            "• Raise `audio_timeout` or `video_timeout` in the configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

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
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {escape(str(value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _resolution(info: QualityInfo) -> str:
    if info.width and info.height:
        return f"{info.width}x{info.height}"
    return "-"


def build_quality_table(qualities: list[QualityInfo], current: int | None = None) -> Table:
    """Builds a table of available qualities, marking the one in use."""
    table = Table(box=box.ROUNDED)
    table.add_column("Code", justify="right", style="bold magenta")
    table.add_column("Quality", style="cyan")
    table.add_column("Resolution")
    table.add_column("Audio", justify="center")

    for info in qualities:
        marker = " [green]◀[/green]" if current is not None and info.quality == current else ""
        table.add_row(
            str(info.quality),
            f"{info.description}{marker}",
            _resolution(info),
            "[green]✓ muxed[/green]" if info.has_audio else "[dim]separate[/dim]",
        )
    return table


def print_quality_table(video_id: str, qualities: list[QualityInfo]):
    console = Console()
    if not qualities:
        console.print(f"[yellow]No qualities reported for {video_id}.[/yellow]")
        return
    table = build_quality_table(qualities)
    table.title = f"[bold]Qualities of {video_id}[/bold]"
    console.print(table)


def print_accounts_table(accounts: list[Account]):
    """Displays stored accounts."""
    console = Console()
    if not accounts:
        console.print("[yellow]No stored accounts found.[/yellow]")
        return

    table = Table(title="[bold]Stored Accounts[/bold]", box=box.ROUNDED)
    table.add_column("Name", style="bold cyan")
    table.add_column("Nickname")
    table.add_column("UID", style="dim")
    table.add_column("Default", justify="center")
    table.add_column("Active", justify="center")
    table.add_column("Last Used", style="dim")

    for account in accounts:
        table.add_row(
            escape(account.name),
            escape(account.nickname or account.username),
            account.uid,
            "[green]✓[/green]" if account.is_default else "",
            "[green]✓[/green]" if account.is_active else "[red]✗[/red]",
            account.last_used.strftime("%Y-%m-%d %H:%M") if account.last_used else "-",
        )
    console.print(table)


def print_result_panel(result: DownloadResult):
    """Displays the outcome of one acquisition."""
    console = Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("Title:", escape(result.title))
    table.add_row("Type:", result.media_type.value)
    table.add_row("Quality:", f"{result.quality_desc} ({result.quality})")
    if result.duration:
        table.add_row("Duration:", format_duration(result.duration))

    for label, path, size in (
        ("Audio:", result.audio_path, result.audio_size),
        ("Video:", result.video_path, result.video_size),
        ("Merged:", result.merged_path, result.merged_size),
    ):
        if not path:
            continue
        size_str = f" ({format_size(size)})" if size else ""
        table.add_row(label, f"[dim]{escape(path)}[/dim]{size_str}")

    table.add_row("Notes:", escape(result.notes))

    console.print()
    console.print(
        Panel(
            table,
            title=f"[bold green]✓ {result.video_id}[/bold green]",
            border_style="green",
            expand=False,
        )
    )

    if result.available_qualities:
        console.print(build_quality_table(result.available_qualities, result.quality))

    if result.merge_required and result.merge_command:
        console.print(
            Panel(
                Text(result.merge_command),
                title="[bold yellow]Merge with ffmpeg[/bold yellow]",
                border_style="yellow",
                expand=False,
            )
        )


def print_summary_panel(stats: DownloadStats, duration_s: float):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Videos:", f"[bold green]{stats.videos_processed}[/bold green]"
    )
    stats_table.add_row(
        "✓ Files Downloaded:", f"[bold green]{stats.artifacts_downloaded}[/bold green]"
    )
    if stats.artifacts_skipped_exists > 0:
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{stats.artifacts_skipped_exists} (exists)[/yellow]"
        )
    if stats.merges_pending > 0:
        stats_table.add_row(
            "⚠ Merges Pending:", f"[yellow]{stats.merges_pending}[/yellow]"
        )
    if stats.videos_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.videos_failed}[/bold red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    avg_speed = stats.total_size_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.videos_failed and not stats.videos_processed:
        title = "[bold red]Download Failed[/bold red]"
        border_color = "red"
    else:
        title = "📺 [bold]Download Complete![/bold]"
        border_color = "green"

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
