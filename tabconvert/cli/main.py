"""
CLI interface for tabconvert.

Provides command-line access to conversion, quota status and the format
catalog.
"""

import sys
from typing import Any, Callable, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tabconvert.config.loader import AppConfig, load_config
from tabconvert.config.log_setup import configure_logging
from tabconvert.core.analytics import LoggingAnalytics
from tabconvert.core.converters import UnsupportedFormat, is_supported
from tabconvert.core.download import FileDownloadSink
from tabconvert.core.formats import get_formats_by_category
from tabconvert.core.hub import ConversionHub
from tabconvert.core.parsers import UploadRejected, analyze_columns, parse_file
from tabconvert.core.quota import LimitCheck, QuotaStatus, QuotaTracker, StatusType
from tabconvert.core.wizard import InvalidTransition
from tabconvert.demo.sample_data import write_sample_outputs
from tabconvert.storage.db import DEFAULT_DB_PATH
from tabconvert.storage.repository import get_storage, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_STATUS_STYLES = {
    StatusType.UNLIMITED: "green",
    StatusType.NORMAL: "green",
    StatusType.WARNING: "yellow",
    StatusType.LIMIT_REACHED: "red",
}


def _build_tracker(db: str, config: AppConfig) -> QuotaTracker:
    return QuotaTracker(
        storage=get_storage(db),
        daily_limit=config.quota.visitor_daily_limit,
        warning_threshold=config.quota.warning_threshold,
        storage_key=config.quota.storage_key
    )


def _parse_options(raw_options: Optional[List[str]]) -> Dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars."""
    options: Dict[str, Any] = {}
    for item in raw_options or []:
        if "=" not in item:
            raise ValueError(f"Option must be key=value, got: {item}")
        key, raw_value = item.split("=", 1)
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        if value is None:
            value = ""
        elif isinstance(value, (list, dict)):
            value = raw_value
        options[key.strip()] = value
    return options


def _limit_prompt(tracker: QuotaTracker) -> Callable[[LimitCheck], None]:
    def _show(check: LimitCheck) -> None:
        remaining_time = tracker.get_remaining_time()
        console.print(Panel(
            f"You've used {check.used} of {check.limit} free conversions today.\n"
            f"Resets in {remaining_time.hours_until_reset} hours at {remaining_time.reset_time_label}.\n\n"
            "Sign up for unlimited conversions.",
            title="Free daily limit reached",
            border_style="red"
        ))
    return _show


def _print_status(status: QuotaStatus) -> None:
    style = _STATUS_STYLES[status.type]
    console.print(f"[{style}]{status.message}[/]")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show informational logs")
):
    """tabconvert CLI."""
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("tabconvert - Use --help to see available commands")


@app.command()
def init(db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Usage database path")):
    """Initialize the usage database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def formats():
    """List the conversion formats."""
    table = Table(title="Conversion Formats")
    table.add_column("Category")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Extension")
    table.add_column("Description")
    table.add_column("Available")

    for category, category_formats in get_formats_by_category().items():
        for fmt in category_formats:
            table.add_row(
                category,
                fmt.id,
                fmt.display_name,
                fmt.file_extension,
                fmt.description,
                "[green]yes[/]" if is_supported(fmt.id) else "[dim]no[/]"
            )
    console.print(table)


@app.command()
def inspect(
    input_path: str = typer.Argument(..., help="CSV, TSV, TXT or JSON file to inspect"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Show the columns of a data file and their inferred types."""
    try:
        app_config = load_config(config)
        parsed = parse_file(
            input_path,
            max_size_bytes=app_config.upload.max_size_bytes,
            allowed_extensions=app_config.upload.allowed_extensions
        )
    except (OSError, UploadRejected, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(
        f"{parsed.filename}: {len(parsed.rows)} rows, {len(parsed.columns)} columns "
        f"({parsed.source_format})"
    )
    if not parsed.rows:
        return

    analysis = analyze_columns(parsed.rows)
    table = Table(title="Column Analysis")
    table.add_column("Column", no_wrap=True)
    table.add_column("Suggested Name", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Unique", justify="right")
    table.add_column("Empty", justify="right")
    table.add_column("Samples")

    for column in parsed.columns:
        profile = analysis.get(column)
        if profile is None:
            # Column only appears past the sampled rows
            continue
        table.add_row(
            column,
            profile.suggested_name,
            profile.data_type,
            str(profile.unique_count),
            str(profile.null_count),
            ", ".join("" if value is None else str(value) for value in profile.sample_values[:3])
        )
    console.print(table)


@app.command()
def status(
    authenticated: bool = typer.Option(False, "--authenticated", "-a", help="Check as a signed-in user"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Usage database path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Show today's conversion quota."""
    try:
        tracker = _build_tracker(db, load_config(config))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    quota_status = tracker.get_status(authenticated)
    _print_status(quota_status)
    if quota_status.type != StatusType.UNLIMITED:
        remaining_time = tracker.get_remaining_time()
        console.print(f"Used: {quota_status.used} / {quota_status.limit}")
        console.print(
            f"Resets in {remaining_time.hours_until_reset} hours at {remaining_time.reset_time_label}"
        )


@app.command()
def convert(
    input_path: str = typer.Argument(..., help="CSV, TSV, TXT or JSON file to convert"),
    to: str = typer.Option(..., "--to", "-t", help="Target format id (see `formats`)"),
    option: Optional[List[str]] = typer.Option(
        None,
        "--option",
        "-o",
        help="Format option as key=value; repeatable"
    ),
    output_dir: str = typer.Option(".", "--output-dir", "-d", help="Directory for the converted file"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Output file name without extension"),
    authenticated: bool = typer.Option(False, "--authenticated", "-a", help="Convert as a signed-in user"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Usage database path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """
    Convert a data file to another format.

    Visitors are limited to a fixed number of conversions per day;
    signed-in users are unlimited.
    """
    try:
        app_config = load_config(config)
        tracker = _build_tracker(db, app_config)
        hub = ConversionHub(
            tracker=tracker,
            is_authenticated=lambda: authenticated,
            on_limit_reached=_limit_prompt(tracker),
            analytics=LoggingAnalytics(),
            max_size_bytes=app_config.upload.max_size_bytes,
            allowed_extensions=app_config.upload.allowed_extensions,
            option_overrides=app_config.formats
        )

        wizard = hub.open_file(input_path)
        if wizard is None:
            sys.exit(EXIT_CODE_FAIL)
        if not wizard.select_format(to):
            sys.exit(EXIT_CODE_FAIL)
        for key, value in _parse_options(option).items():
            wizard.update_option(key, value)

        if not wizard.run_conversion():
            if wizard.error:
                console.print(f"[red]Conversion failed:[/] {wizard.error}")
            sys.exit(EXIT_CODE_FAIL)

        path = wizard.download(FileDownloadSink(output_dir), name)
        console.print(
            f"[green]✓[/] Converted {len(wizard.rows)} rows to "
            f"{wizard.selected_format.display_name}: {path}"
        )
        _print_status(tracker.get_status(authenticated))
        sys.exit(EXIT_CODE_PASS)

    except (OSError, UploadRejected, UnsupportedFormat, InvalidTransition,
            ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def reset(
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Usage database path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Reset today's visitor conversion count."""
    try:
        tracker = _build_tracker(db, load_config(config))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    tracker.reset_count()
    console.print("[green]✓[/] Conversion count reset")


@app.command()
def demo(output_dir: str = typer.Option("demo_output", "--output-dir", "-d", help="Where to write samples")):
    """Write sample data converted to every supported format."""
    written = write_sample_outputs(output_dir)
    for format_id, path in written.items():
        console.print(f"[green]✓[/] {format_id}: {path}")


if __name__ == "__main__":
    app()
