"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from themesong_cli.models.candidate import Candidate, ThemeOutcome
from themesong_cli.models.config import ThemeSongConfig
from themesong_cli.models.stats import RunStats
from themesong_cli.utils.formatting import format_duration, format_size

OUTCOME_MESSAGES = {
    ThemeOutcome.DOWNLOADED: "[green]✓ Theme song downloaded.[/green]",
    ThemeOutcome.SKIPPED_EXISTING: (
        "[yellow]○ Series already has a theme song. Use --force to replace it.[/yellow]"
    ),
    ThemeOutcome.NOT_FOUND: "[yellow]○ No provider had a theme song for this series.[/yellow]",
    ThemeOutcome.DOWNLOAD_FAILED: "[red]✗ The theme song could not be downloaded.[/red]",
    ThemeOutcome.NORMALIZATION_FAILED: "[red]✗ FFmpeg failed to normalize the theme song.[/red]",
    ThemeOutcome.PLACEMENT_FAILED: (
        "[red]✗ The theme song could not be written to the series folder.[/red]"
    ),
    ThemeOutcome.ERROR: "[red]✗ An unexpected error occurred. Run with -vv for details.[/red]",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `themesong-cli init --library <path>` to create a configuration.",
            "• Check the values with `themesong-cli --show-config`.",
        ],
        "LibraryError": [
            "• Make sure 'library_paths' points at your TV show folders.",
            "• Series folders need a TVDb id: a '[tvdbid-123]' tag or a tvshow.nfo.",
        ],
        "PlacementError": [
            "• Check that the series folder is writable by this user.",
        ],
        "TranscoderExecutionError": [
            "• Verify 'ffmpeg_path' with `themesong-cli diagnose`.",
            "• Set 'normalize_audio = false' to skip normalization.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

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
    """Displays the raw configuration values."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value) or "(none)"
        content += f"{key} = {escape(str(value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ThemeSongConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    libraries = ", ".join(config.library_paths) or "[red]none[/red]"
    table.add_row("Libraries:", libraries)
    table.add_row("Staging Dir:", f"[dim]{config.staging_dir}[/dim]")
    if config.normalize_audio:
        table.add_row(
            "Normalization:",
            f"✓ {config.normalize_audio_volume} dB, fades "
            f"{config.fade_in_duration}s/{config.fade_out_duration}s",
        )
    else:
        table.add_row("Normalization:", "✗ Disabled")
    table.add_row("FFmpeg:", config.ffmpeg_path)
    for label, key in (("Plex", "plex"), ("TelevisionTunes", "television_tunes")):
        state = "✓ Enabled" if config.provider_enabled(key) else "✗ Disabled"
        table.add_row(f"{label}:", f"{state} (priority {config.provider_priority(key)})")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_series_table(candidates: Iterable[Candidate]):
    """Lists library series and whether each has a theme song."""
    console = Console()
    table = Table(title="TV Series")
    table.add_column("Name", style="cyan")
    table.add_column("Id", style="dim")
    table.add_column("Theme", justify="center")
    table.add_column("Path", style="dim", overflow="fold")

    count = 0
    for c in candidates:
        count += 1
        table.add_row(
            escape(c.name),
            c.identity,
            "[green]✓[/green]" if c.has_artifact else "[red]✗[/red]",
            escape(str(c.library_dir)),
        )

    if count:
        console.print(table)
    else:
        console.print("[yellow]No series with a TVDb id were found.[/yellow]")


def print_theme_info(candidate: Candidate, size_bytes: int, duration_s: float):
    """Shows details of a series' placed theme song."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("Series:", escape(candidate.name))
    table.add_row("Path:", f"[dim]{escape(str(candidate.theme_path))}[/dim]")
    table.add_row("Size:", format_size(size_bytes))
    table.add_row("Duration:", format_duration(duration_s) if duration_s else "unknown")
    console.print(Panel(table, title="Theme Song", border_style="cyan", expand=False))


def print_summary_panel(stats: RunStats):
    """Displays the final summary of a batch run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "Library:", f"{stats.total_series} series ({stats.with_theme} with themes)"
    )
    stats_table.add_row("Processed:", str(stats.processed))
    stats_table.add_row("✓ Downloaded:", f"[bold green]{stats.succeeded}[/bold green]")
    if stats.not_found > 0:
        stats_table.add_row("○ Not Found:", f"[yellow]{stats.not_found}[/yellow]")
    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")
    if stats.normalized or stats.normalization_skipped:
        stats_table.add_row(
            "Normalized:",
            f"{stats.normalized} [dim]({stats.normalization_skipped} already at target)[/dim]",
        )
    if stats.backups_created > 0:
        stats_table.add_row("Backups:", str(stats.backups_created))
    stats_table.add_row("", "")
    stats_table.add_row("Duration:", format_duration(stats.elapsed))

    title = "[bold green]Run Complete[/bold green]"
    border = "green"
    if stats.cancelled:
        title = "[bold yellow]Run Cancelled[/bold yellow]"
        border = "yellow"
    elif stats.failed:
        border = "red"

    console.print(Panel(stats_table, title=title, border_style=border, expand=False))
