"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import contextlib
import logging
import os
import shutil
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from themesong_cli import __version__
from themesong_cli.core import ThemeSongManager
from themesong_cli.exceptions import ThemeSongError
from themesong_cli.media import FileIntegrityChecker, FilePlacer, NormalizationPipeline
from themesong_cli.models.candidate import ThemeOutcome
from themesong_cli.models.config import ThemeSongConfig
from themesong_cli.storage import ConfigManager, FilesystemLibrary
from themesong_cli.utils.path import create_dir, staging_filename

from .formatters import (
    OUTCOME_MESSAGES,
    print_config,
    print_series_table,
    print_summary_panel,
    print_theme_info,
    print_validation_table,
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
log = logging.getLogger("themesong_cli")

app = typer.Typer(
    name="themesong-cli",
    help=(
        "Download and normalize theme songs for your TV show library. Use"
        " 'themesong-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
theme_app = typer.Typer(help="Show, upload or delete the theme song of one series.")
app.add_typer(theme_app, name="theme")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "themesong-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> ThemeSongConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ThemeSongError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e


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
    """Theme Song Downloader CLI"""
    if version:
        console.print(f"[bold]themesong-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("themesong_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]themesong-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config = _load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        console.print(f"[dim]Staging directory: {config.staging_dir}[/dim]")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    library: list[Path] = typer.Option(  # noqa: B008
        ...,
        "--library",
        "-l",
        help="A TV show library folder. Repeat for several libraries.",
    ),
    ffmpeg: str = typer.Option("ffmpeg", "--ffmpeg", help="Path to the ffmpeg binary."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    missing = [p for p in library if not p.expanduser().is_dir()]
    for path in missing:
        console.print(f"[yellow]⚠️  '{escape(str(path))}' is not a directory (yet).[/yellow]")

    settings = {
        "library_paths": [str(p.expanduser().resolve()) for p in library],
        "ffmpeg_path": ffmpeg,
    }
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready! Try: [cyan]themesong-cli download[/cyan]")


@app.command()
def validate():
    """Validate the current configuration."""
    config = _load_config()
    print_validation_table(config)


@app.command()
def diagnose():
    """Check the configuration, library folders and ffmpeg."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False
    if not CONFIG_FILE.is_file():
        console.print(
            "[red]✗ Config file not found.[/] Run [cyan]themesong-cli init[/cyan]."
        )
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")

    config = _load_config()
    console.print("[green]✓[/] Configuration file is valid and can be loaded.")

    try:
        candidates = FilesystemLibrary(config.library_paths).list_candidates()
        console.print(f"[green]✓[/] Library readable: {len(candidates)} series found.")
    except ThemeSongError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        issues_found = True

    if config.normalize_audio:
        available = asyncio.run(NormalizationPipeline().is_available(config.ffmpeg_path))
        if available:
            console.print(f"[green]✓[/] FFmpeg is available at '{config.ffmpeg_path}'.")
        else:
            console.print(
                f"[red]✗ FFmpeg not usable at '{config.ffmpeg_path}'.[/] "
                "Theme songs will be saved without normalization."
            )
            issues_found = True
    else:
        console.print("[dim]Normalization disabled; ffmpeg not checked.[/dim]")

    console.print()
    if not issues_found:
        console.print("[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n")
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )


@app.command(name="series")
def series_command():
    """List TV series in the library and their theme song status."""
    config = _load_config()
    try:
        candidates = FilesystemLibrary(config.library_paths).list_candidates()
    except ThemeSongError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    print_series_table(candidates)


@contextlib.contextmanager
def _cancel_on_signals(cancel: asyncio.Event):
    """Turns SIGINT/SIGTERM into a cooperative cancellation request."""
    loop = asyncio.get_running_loop()
    installed = []

    def _request_cancel():
        if not cancel.is_set():
            console.print(
                "\n[yellow]⚠️  Stopping after the current series...[/yellow]"
            )
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _request_cancel)
            installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@app.command(name="download")
def download_command(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Also replace existing theme songs (the old file is kept as a backup).",
    ),
    no_normalize: bool = typer.Option(
        False, "--no-normalize", help="Save theme songs without ffmpeg normalization."
    ),
):
    """Download theme songs for every series missing one."""
    cli_options = {"normalize_audio": False} if no_normalize else None
    config = _load_config(cli_options)

    async def _download_async():
        cancel = asyncio.Event()
        async with ThemeSongManager.from_config(config) as manager:
            with _cancel_on_signals(cancel):
                return await manager.run_all(force=force, cancel=cancel)

    try:
        stats = asyncio.run(_download_async())
    except ThemeSongError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e

    print_summary_panel(stats)


@app.command(name="download-one")
def download_one_command(
    series: str = typer.Argument(..., help="Series name, TVDb id or 'tvdb:<id>'."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace an existing theme song."
    ),
):
    """Download the theme song for a single series."""
    config = _load_config()

    async def _download_one_async() -> ThemeOutcome:
        async with ThemeSongManager.from_config(config) as manager:
            candidate = FilesystemLibrary(config.library_paths).find(series)
            return await manager.process_one(candidate, force=force)

    try:
        outcome = asyncio.run(_download_one_async())
    except ThemeSongError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    console.print(OUTCOME_MESSAGES[outcome])
    if not outcome.is_success and outcome is not ThemeOutcome.SKIPPED_EXISTING:
        raise typer.Exit(code=1)


def _find_series(config: ThemeSongConfig, series: str):
    try:
        return FilesystemLibrary(config.library_paths).find(series)
    except ThemeSongError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@theme_app.command("show")
def theme_show(
    series: str = typer.Argument(..., help="Series name, TVDb id or 'tvdb:<id>'."),
):
    """Show the theme song of a series."""
    config = _load_config()
    candidate = _find_series(config, series)
    if not candidate.theme_path.is_file():
        console.print(f"[yellow]○ '{escape(candidate.name)}' has no theme song.[/yellow]")
        raise typer.Exit(code=1)
    print_theme_info(
        candidate,
        candidate.theme_path.stat().st_size,
        FileIntegrityChecker.mp3_duration(str(candidate.theme_path)),
    )


@theme_app.command("upload")
def theme_upload(
    series: str = typer.Argument(..., help="Series name, TVDb id or 'tvdb:<id>'."),
    file: Path = typer.Argument(  # noqa: B008
        ..., exists=True, dir_okay=False, readable=True, help="An MP3 file."
    ),
):
    """Use a local MP3 as the theme song of a series."""
    config = _load_config()
    candidate = _find_series(config, series)

    if not FileIntegrityChecker.check_mp3(str(file)):
        console.print("[red]✗ File must be an MP3 audio file.[/red]")
        raise typer.Exit(code=1)

    placer = FilePlacer()
    create_dir(config.staging_dir)
    staged = config.staging_dir / f"upload_{staging_filename(candidate.name, candidate.identity)}"
    try:
        shutil.copyfile(file, staged)
        record = placer.commit(staged, candidate.theme_path)
    except (OSError, ThemeSongError) as e:
        console.print(f"[red]✗ Could not upload theme song: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        placer.cleanup(staged)

    if record.backup_path:
        console.print(f"[dim]Previous theme song kept as '{record.backup_path.name}'.[/dim]")
    console.print(f"[green]✓ Theme song uploaded for {escape(candidate.name)}.[/green]")


@theme_app.command("delete")
def theme_delete(
    series: str = typer.Argument(..., help="Series name, TVDb id or 'tvdb:<id>'."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Delete the theme song of a series."""
    config = _load_config()
    candidate = _find_series(config, series)
    if not candidate.theme_path.is_file():
        console.print(f"[yellow]○ '{escape(candidate.name)}' has no theme song.[/yellow]")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm(f"Delete the theme song of '{candidate.name}'?"):
        raise typer.Abort()

    try:
        FilePlacer().remove(candidate.theme_path)
    except ThemeSongError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Theme song deleted for {escape(candidate.name)}.[/green]")
