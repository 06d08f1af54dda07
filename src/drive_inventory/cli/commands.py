"""
CLI commands for Drive Inventory using Click.

Each ``run`` is one invocation of the resumable crawl; ``--follow`` keeps
invoking until the inventory completes. The remaining commands inspect or
reset the stored checkpoint.
"""

import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from drive_inventory.core.config import Config, CrawlConfig, AnalysisConfig, InventoryProfile, get_config
from drive_inventory.core.exceptions import CheckpointError, ExportError, InventoryLockedError, RemoteError
from drive_inventory.core.models import ReportModel, RunStatus
from drive_inventory.core.remote import LocalFileSystemClient
from drive_inventory.core.scheduler import CrawlScheduler, RunOutcome
from drive_inventory.core.secure_logging import configure_logging
from drive_inventory.database.store import create_checkpoint_store
from drive_inventory.export.excel import export_report, generate_report_filename
from drive_inventory.utils.formatting import format_bytes, format_timestamp

logger = logging.getLogger(__name__)

console = Console()

STATUS_STYLES = {
    RunStatus.NOT_STARTED: "dim",
    RunStatus.RUNNING: "cyan",
    RunStatus.PAUSED: "yellow",
    RunStatus.COMPLETE: "green",
    RunStatus.ERROR: "red",
}


# Main CLI group
@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Path to configuration file')
@click.option('--debug/--no-debug', default=False,
              help='Enable debug logging')
@click.pass_context
def cli(ctx, config_path, debug):
    """
    Drive Inventory - resumable inventory of large file stores.

    Run 'drive-inventory COMMAND --help' for more information on each command.
    """
    ctx.ensure_object(dict)

    try:
        if config_path:
            config = Config.from_yaml(config_path)
        else:
            config = get_config().model_copy(deep=True)
    except Exception as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    config.debug = config.debug or debug
    ctx.obj['config'] = config

    configure_logging(
        log_dir=config.log_directory,
        level=logging.DEBUG if config.debug else logging.INFO,
        enable_console_logging=config.debug,
    )

    if config.debug:
        console.print("[yellow]Debug mode enabled[/yellow]")


def _open_scheduler(config: Config, client=None, **kwargs) -> CrawlScheduler:
    try:
        store = create_checkpoint_store(config)
    except CheckpointError as e:
        raise click.ClickException(str(e))
    return CrawlScheduler(config, client, store, **kwargs)


def _resolve_output(output: Optional[Path], config: Config, report: ReportModel) -> Path:
    target = output or config.output_directory
    if target.suffix.lower() == ".xlsx":
        return target
    return target / generate_report_filename(report.inventory_name, report.generated_at)


def _apply_overrides(config: Config, crawl_overrides: dict, analysis_overrides: dict) -> None:
    crawl_overrides = {k: v for k, v in crawl_overrides.items() if v is not None}
    analysis_overrides = {k: v for k, v in analysis_overrides.items() if v is not None}
    try:
        if crawl_overrides:
            config.crawl = CrawlConfig(**{**config.crawl.model_dump(), **crawl_overrides})
        if analysis_overrides:
            config.analysis = AnalysisConfig(**{**config.analysis.model_dump(), **analysis_overrides})
    except ValueError as e:
        raise click.BadParameter(str(e))


# Run command
@cli.command()
@click.argument('root', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option('--follow', is_flag=True,
              help='Keep invoking after each pause until the inventory completes')
@click.option('--output', '-o', type=click.Path(path_type=Path),
              help='Report file (.xlsx) or directory (default: configured output directory)')
@click.option('--force', is_flag=True,
              help='Take over a checkpoint held by another invocation or left in ERROR')
@click.option('--name', 'inventory_name', type=str, help='Inventory name (checkpoint key)')
@click.option('--batch-size', type=int, help='Listings per batch')
@click.option('--max-runtime', type=float, help='Time budget per invocation in seconds')
@click.option('--memory-limit', type=float, help='Pause when process memory exceeds this many MB')
@click.option('--top-k', type=int, help='Entries kept per ranked list')
@click.option('--profile', type=click.Choice([p.value for p in InventoryProfile]),
              help='Inclusion profile')
@click.option('--permissions/--no-permissions', default=None,
              help='Fetch sharing settings for each file')
@click.option('--include-trashed/--exclude-trashed', default=None,
              help='Include trashed items')
@click.pass_context
def run(ctx, root, follow, output, force, inventory_name, batch_size, max_runtime, memory_limit,
        top_k, profile, permissions, include_trashed):
    """
    Run one inventory invocation over ROOT.

    The run resumes from the stored checkpoint when one exists. When the
    time budget is spent the run pauses; invoke again (or use --follow)
    to continue.

    Examples:
        drive-inventory run ~/Documents
        drive-inventory run /srv/share --follow --output reports/
        drive-inventory run /srv/share --profile large --max-runtime 120
    """
    config: Config = ctx.obj['config']
    if inventory_name:
        config.inventory_name = inventory_name
    _apply_overrides(
        config,
        {
            'batch_size': batch_size,
            'max_runtime_seconds': max_runtime,
            'memory_limit_mb': memory_limit,
            'profile': profile,
            'track_permissions': permissions,
            'include_trashed': include_trashed,
        },
        {'top_k': top_k},
    )

    try:
        client = LocalFileSystemClient(root)
    except RemoteError as e:
        raise click.ClickException(str(e))

    continuation = {}
    rendered = {}

    def schedule_continuation(delay: float) -> None:
        continuation['delay'] = delay

    def render(report: ReportModel) -> None:
        rendered['path'] = export_report(report, _resolve_output(output, config, report))

    scheduler = _open_scheduler(
        config, client,
        schedule_continuation=schedule_continuation,
        report_sink=render,
    )

    def handle_interrupt(signum, frame):
        console.print("\n[yellow]Stopping after the current batch...[/yellow]")
        scheduler.request_stop()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        console.print(Panel.fit(
            f"[bold blue]Drive Inventory[/bold blue]\n"
            f"Inventory: {config.inventory_name}\n"
            f"Root: {client.root}\n"
            f"Profile: {config.crawl.profile.value}"
        ))
        while True:
            continuation.clear()
            try:
                outcome = scheduler.run(force=force)
            except InventoryLockedError as e:
                console.print(f"[red]{e}[/red]")
                console.print("Use --force to take over the checkpoint, or reset to start over.")
                ctx.exit(2)
            force = False

            _display_outcome(outcome, rendered.get('path'))

            if not (follow and outcome.status == RunStatus.PAUSED and 'delay' in continuation):
                break

            delay = continuation['delay']
            console.print(f"[dim]Continuing in {delay:.0f}s (Ctrl+C to stop)...[/dim]")
            time.sleep(delay)
            if scheduler.stop_requested:
                break
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if outcome.status == RunStatus.ERROR:
        ctx.exit(1)
    if outcome.status == RunStatus.PAUSED and not follow and 'delay' in continuation:
        console.print(
            f"Run [bold]drive-inventory run {root}[/bold] again in "
            f"{continuation['delay']:.0f}s to continue."
        )


def _display_outcome(outcome: RunOutcome, report_path: Optional[Path]) -> None:
    style = STATUS_STYLES.get(outcome.status, "white")
    lines = [
        f"[bold {style}]{outcome.status.value}[/bold {style}]",
        f"Files this invocation: {outcome.files_processed:,} ({outcome.files_skipped:,} skipped)",
        f"Batches this invocation: {outcome.batches}",
        f"Files in inventory: {outcome.total_files:,}",
        f"Duration: {outcome.duration_seconds:.1f}s",
    ]
    if outcome.pause_reason is not None:
        lines.append(f"Paused: {outcome.pause_reason.value.replace('_', ' ')}")
    if outcome.error:
        lines.append(f"[red]Error: {outcome.error}[/red]")
    if report_path is not None and outcome.status == RunStatus.COMPLETE:
        lines.append(f"Report: {report_path}")
    console.print(Panel.fit("\n".join(lines), title="Invocation Result"))

    if outcome.report is not None:
        _display_report_summary(outcome.report)


def _display_report_summary(report: ReportModel) -> None:
    table = Table(title=f"Inventory '{report.inventory_name}'", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total files", f"{report.total_files:,}")
    table.add_row("Total size", report.total_size)
    table.add_row("Shared / public", f"{report.shared_files_count:,} / {report.public_files:,}")
    table.add_row("High risk files", f"{len(report.high_risk_files):,}")
    table.add_row("Cleanup potential", report.cleanup_potential)
    table.add_row("Duplicate groups", f"{len(report.duplicate_groups):,}")
    table.add_row("Errors", f"{report.errors:,}")
    console.print(table)

    for item in report.recommendations:
        console.print(f"  [bold]{item.priority}[/bold] {item.title}")


@cli.command()
@click.pass_context
def status(ctx):
    """
    Show the stored checkpoint of the configured inventory.
    """
    config: Config = ctx.obj['config']
    try:
        current = _open_scheduler(config).status()
    except CheckpointError as e:
        raise click.ClickException(str(e))

    style = STATUS_STYLES.get(current.status, "white")
    table = Table(title=f"Inventory '{current.inventory_name}'", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", f"[{style}]{current.status.value}[/{style}]")
    if current.status != RunStatus.NOT_STARTED:
        table.add_row("Batches", str(current.batch_count))
        table.add_row("Files processed", f"{current.files_processed:,}")
        table.add_row("Total size", format_bytes(current.total_bytes))
        table.add_row("Errors", str(current.errors))
        table.add_row("More to list", "yes" if current.has_cursor else "no")
        table.add_row("Started", format_timestamp(current.started_at))
        table.add_row("Last checkpoint", format_timestamp(current.updated_at))
        if current.last_error:
            table.add_row("Last error", f"[red]{current.last_error}[/red]")
    console.print(table)


@cli.command()
@click.confirmation_option(prompt='Discard the stored checkpoint and start over on the next run?')
@click.pass_context
def reset(ctx):
    """
    Discard the stored checkpoint.
    """
    config: Config = ctx.obj['config']
    try:
        _open_scheduler(config).reset()
    except CheckpointError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]✓[/green] Inventory '{config.inventory_name}' reset")


@cli.command()
@click.option('--output', '-o', type=click.Path(path_type=Path),
              help='Report file (.xlsx) or directory (default: configured output directory)')
@click.pass_context
def report(ctx, output):
    """
    Render a report from the stored checkpoint, complete or not.
    """
    config: Config = ctx.obj['config']
    try:
        partial = _open_scheduler(config).partial_report()
    except CheckpointError as e:
        raise click.ClickException(str(e))

    if partial is None:
        console.print(f"[yellow]No checkpoint stored for inventory '{config.inventory_name}'[/yellow]")
        ctx.exit(1)

    try:
        path = export_report(partial, _resolve_output(output, config, partial))
    except ExportError as e:
        raise click.ClickException(str(e))

    _display_report_summary(partial)
    console.print(f"[green]✓[/green] Report written to {path}")


@cli.command()
@click.option('--limit', '-l', type=int, default=20, help='Number of invocations to show')
@click.pass_context
def history(ctx, limit):
    """
    Show recent invocations of the configured inventory.
    """
    config: Config = ctx.obj['config']
    scheduler = _open_scheduler(config)
    runs = scheduler.store.history(limit=limit)

    if not runs:
        console.print("[yellow]No invocations recorded[/yellow]")
        return

    table = Table(title=f"Invocations of '{config.inventory_name}'")
    table.add_column("Recorded", style="cyan")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Batches", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Error")

    for entry in runs:
        recorded_at = entry.get('recorded_at')
        table.add_row(
            format_timestamp(recorded_at) if recorded_at else "",
            entry['status'],
            f"{entry['files_processed']:,}",
            str(entry['batches']),
            f"{entry['duration_seconds']:.1f}s",
            entry.get('error') or "",
        )
    console.print(table)


@cli.command(name='config')
@click.option('--write', 'write_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the effective configuration to a YAML file')
@click.pass_context
def show_config(ctx, write_path):
    """
    Show the effective configuration.

    Examples:
        drive-inventory config
        drive-inventory config --write ~/.drive_inventory/config.yaml
    """
    config: Config = ctx.obj['config']

    if write_path:
        config.to_yaml(write_path)
        console.print(f"[green]✓[/green] Configuration written to {write_path}")
        return

    config_dict = config.model_dump(mode="json")
    syntax = Syntax(json.dumps(config_dict, indent=2), "json", theme="monokai", line_numbers=True)
    console.print(Panel(syntax, title="Current Configuration"))


# Entry point for script execution
def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == '__main__':
    sys.exit(main())
