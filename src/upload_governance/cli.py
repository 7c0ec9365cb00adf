"""
Upload Governance CLI - Command-line interface.

Check quotas, run uploads, and reclaim expired artifacts from the terminal.
"""

import mimetypes
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from upload_governance.artifacts.retention import MAX_TTL_DAYS, ttl_from_days
from upload_governance.config import GovernanceSettings, configure_logging, load_settings
from upload_governance.core.exceptions import (
    ConfigurationError,
    GovernanceError,
    StoreUnavailableError,
    ValidationError,
    format_exception,
)
from upload_governance.scheduler import CleanupScheduler
from upload_governance.services import GovernanceServices, build_services

app = typer.Typer(
    name="upload-governance",
    help="Upload Governance - per-principal upload quotas and artifact retention",
    no_args_is_help=True,
)
console = Console()


def _settings(ctx: typer.Context) -> GovernanceSettings:
    if isinstance(ctx.obj, GovernanceSettings):
        return ctx.obj
    return load_settings()


def _services(ctx: typer.Context) -> GovernanceServices:
    return build_services(_settings(ctx))


def _ttl(ttl_days: float | None, settings: GovernanceSettings) -> timedelta:
    if ttl_days is None:
        return settings.retention_ttl
    try:
        return ttl_from_days(ttl_days)
    except ValidationError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)


@app.callback()
def configure(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML settings file (default: $UG_CONFIG)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the log level"),
):
    """Load settings and configure logging for every command."""
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@app.command("check-quota")
def check_quota(
    ctx: typer.Context,
    principal_id: str = typer.Argument(..., help="Principal to check"),
):
    """Check whether a principal may upload now (does not consume quota)."""
    services = _services(ctx)
    try:
        decision = services.controller.try_admit(principal_id)
    except ValidationError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)
    finally:
        services.close()

    console.print_json(data=decision.to_summary())


@app.command()
def usage(
    ctx: typer.Context,
    principal_id: str = typer.Argument(..., help="Principal to inspect"),
):
    """Show a principal's current quota usage."""
    services = _services(ctx)
    try:
        stats = services.controller.usage(principal_id)
    finally:
        services.close()

    table = Table(title=f"Upload Quota: {principal_id or '(none)'}")
    table.add_column("Window", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right", style="green")

    table.add_row(
        "Last hour", str(stats.hourly_count), str(stats.hourly_limit), str(stats.hourly_remaining)
    )
    table.add_row(
        "Last 24 hours", str(stats.daily_count), str(stats.daily_limit), str(stats.daily_remaining)
    )

    console.print(table)


@app.command()
def upload(
    ctx: typer.Context,
    principal_id: str = typer.Argument(..., help="Uploading principal"),
    file: Path = typer.Argument(..., help="File to upload"),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", help="MIME type (guessed from the name if omitted)"
    ),
):
    """Upload a file through admission control."""
    if not file.is_file():
        console.print(f"[red]File does not exist: {file}[/red]")
        raise typer.Exit(1)

    content = file.read_bytes()
    content_type = content_type or mimetypes.guess_type(file.name)[0]

    services = _services(ctx)
    try:
        result = services.uploads.upload(principal_id, file.name, content, content_type=content_type)
    except GovernanceError as e:
        console.print(f"[red]Upload failed:[/red] {format_exception(e)}")
        raise typer.Exit(1)
    finally:
        services.close()

    if not result.decision.allowed:
        console.print(f"[yellow]{result.decision.reason}[/yellow]")
        raise typer.Exit(1)

    console.print(
        Panel.fit(
            f"[bold green]Uploaded[/bold green]\n"
            f"Path: {result.path}\n"
            f"Size: {result.size_bytes} bytes\n"
            f"Artifact: {result.artifact_id or '-'}",
        )
    )
    if result.orphaned:
        console.print(f"[yellow]Metadata was not saved: {result.metadata_error}[/yellow]")


@app.command("run-cleanup")
def run_cleanup(
    ctx: typer.Context,
    ttl_days: Optional[float] = typer.Option(
        None,
        "--ttl-days",
        min=0,
        max=MAX_TTL_DAYS,
        help="Delete artifacts older than this many days",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Delete expired artifacts from the blob store and metadata index."""
    settings = _settings(ctx)
    ttl = _ttl(ttl_days, settings)

    if not yes and sys.stdin.isatty():
        typer.confirm(f"Delete all artifacts older than {ttl}?", abort=True)

    services = build_services(settings)
    try:
        outcome = services.collector.collect(ttl=ttl)
    except StoreUnavailableError as e:
        console.print(f"[red]Cleanup failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        services.close()

    console.print_json(data=outcome.to_summary())


@app.command("count-expired")
def count_expired(
    ctx: typer.Context,
    ttl_days: Optional[float] = typer.Option(
        None,
        "--ttl-days",
        min=0,
        max=MAX_TTL_DAYS,
        help="Count artifacts older than this many days",
    ),
):
    """Count artifacts the next cleanup would attempt (dry run)."""
    settings = _settings(ctx)
    ttl = _ttl(ttl_days, settings)

    services = build_services(settings)
    try:
        count = services.collector.count_expired(ttl=ttl)
    except StoreUnavailableError as e:
        console.print(f"[red]Count failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        services.close()

    console.print(str(count))


@app.command()
def schedule(
    ctx: typer.Context,
    interval_hours: Optional[float] = typer.Option(
        None, "--interval-hours", min=0.001, help="Hours between cleanup passes"
    ),
    ttl_days: Optional[float] = typer.Option(
        None,
        "--ttl-days",
        min=0,
        max=MAX_TTL_DAYS,
        help="Delete artifacts older than this many days",
    ),
):
    """Run cleanup on a fixed cadence until interrupted."""
    settings = _settings(ctx)
    interval = (
        timedelta(hours=interval_hours) if interval_hours is not None else settings.cleanup_interval
    )
    ttl = _ttl(ttl_days, settings)

    services = build_services(settings)
    scheduler = CleanupScheduler(
        services.collector, interval=interval, ttl=ttl, clock=services.clock
    )

    console.print(
        Panel.fit(
            f"[bold blue]Scheduled Cleanup[/bold blue]\n"
            f"Interval: {interval}\n"
            f"TTL: {ttl}\n"
            f"[dim]Press Ctrl+C to stop[/dim]",
        )
    )

    scheduler.start()
    try:
        while not scheduler.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping scheduler[/yellow]")
    finally:
        scheduler.stop()
        services.close()

    console.print(f"Passes run: {scheduler.pass_count}")


@app.command()
def version():
    """Show Upload Governance version."""
    from upload_governance import __version__

    console.print(f"Upload Governance v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
