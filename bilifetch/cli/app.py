"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from bilifetch import __version__
from bilifetch.browser import SessionPool
from bilifetch.core import DownloadManager
from bilifetch.exceptions import BiliFetchError
from bilifetch.models.media import MediaType
from bilifetch.storage import ConfigManager, CredentialStore

from .formatters import (
    format_error_with_suggestions,
    print_accounts_table,
    print_config,
    print_quality_table,
    print_result_panel,
    print_summary_panel,
)

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
log = logging.getLogger("bilifetch")

app = typer.Typer(
    name="bilifetch",
    help=(
        "Download audio and video from Bilibili with stored account cookies. Use"
        " 'bilifetch <command> --help' for more info."
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
    return base_dir.expanduser() / "bilifetch"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _fail(error: BiliFetchError) -> typer.Exit:
    console.print(format_error_with_suggestions(error))
    log.debug("Full traceback:", exc_info=True)
    return typer.Exit(code=1)


def _parse_media_type(value: str) -> MediaType:
    try:
        return MediaType(value)
    except ValueError as e:
        raise typer.BadParameter(
            f"'{value}' is not one of audio, video, merged."
        ) from e


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
    """Bilibili media downloader CLI"""
    if version:
        console.print(f"[bold]bilifetch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("bilifetch").setLevel(log_level)

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            config_data = config_manager.as_display_dict()
        except BiliFetchError as e:
            raise _fail(e) from e
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]Config file not found, showing defaults.[/yellow] Run"
                " [cyan]bilifetch init[/cyan] to write one."
            )
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
    cookie_dir: str | None = typer.Option(
        None, "--cookie-dir", help="Directory holding accounts.json and cookie files."
    ),
    output_dir: str | None = typer.Option(
        None, "--output-dir", help="Directory downloads are written to."
    ),
):
    """Write a default configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {"cookie_dir": cookie_dir, "output_dir": output_dir}.items()
        if value is not None
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except BiliFetchError as e:
        raise _fail(e) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]bilifetch download <BVID>[/cyan]")


@app.command(name="download")
def download_command(
    videos: list[str] = typer.Argument(  # noqa: B008
        ..., help="One or more BV/av ids or video URLs."
    ),
    media_type: str = typer.Option(
        "merged",
        "-t",
        "--type",
        help="What to download: audio, video or merged.",
    ),
    quality: int | None = typer.Option(
        None,
        "-q",
        "--quality",
        help="Quality code, e.g. 16 (360P), 32 (480P), 64 (720P), 80 (1080P), 120 (4K).",
    ),
    cid: int | None = typer.Option(
        None, "--cid", help="Page id of a multi-part video (first page by default)."
    ),
    account: str | None = typer.Option(
        None, "-a", "--account", help="Stored account to use (default account if omitted)."
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory downloads are written to."
    ),
):
    """Download audio, video or a merged file."""
    kind = _parse_media_type(media_type)
    cli_options = {
        key: value
        for key, value in {"quality": quality, "output_dir": output_dir}.items()
        if value is not None
    }

    async def _download_async():
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        pool = SessionPool.from_config(config)
        async with pool, DownloadManager(config, pool) as manager:
            console.print("[bold cyan]📺 Starting download session...[/bold cyan]")
            start_time = time.monotonic()
            if len(videos) == 1:
                results = [
                    await manager.download(videos[0], kind, config.quality, cid, account)
                ]
            else:
                if cid:
                    log.warning("[yellow]--cid is ignored when downloading several videos[/yellow]")
                results = await manager.download_many(videos, kind, config.quality, account)
            duration = time.monotonic() - start_time

        for result in results:
            print_result_panel(result)
        print_summary_panel(manager.stats, duration)
        if manager.stats.videos_failed:
            raise typer.Exit(code=1)

    try:
        asyncio.run(_download_async())
    except BiliFetchError as e:
        raise _fail(e) from e


@app.command()
def qualities(
    video: str = typer.Argument(..., help="BV/av id or video URL."),
    cid: int | None = typer.Option(None, "--cid", help="Page id (first page by default)."),
    account: str | None = typer.Option(
        None, "-a", "--account", help="Stored account to use (default account if omitted)."
    ),
):
    """List the qualities a video is offered in."""

    async def _qualities_async():
        config = ConfigManager(CONFIG_FILE).load_config()
        pool = SessionPool.from_config(config)
        async with pool, DownloadManager(config, pool) as manager:
            found = await manager.list_qualities(video, cid, account)
        print_quality_table(video, found)

    try:
        asyncio.run(_qualities_async())
    except BiliFetchError as e:
        raise _fail(e) from e


@app.command()
def accounts():
    """List stored accounts."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        store = CredentialStore(Path(config.cookie_dir))
        print_accounts_table(store.load_accounts())
    except BiliFetchError as e:
        raise _fail(e) from e
