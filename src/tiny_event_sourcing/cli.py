"""Read-only CLI for inspecting an event log and its snapshots.

    tiny-es status
    tiny-es log --limit 20
    tiny-es snapshot <name> --json
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .backends import FileStoreBackend
from .constants import ENV_DATA_PATH
from .errors import EventSourcingError
from .log import EventLog
from .models import IndexedEvent, StateSnapshot
from .settings import Settings

console = Console()

PAYLOAD_PREVIEW_CHARS = 60


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _load_log(settings: Settings) -> EventLog:
    return asyncio.run(EventLog.open(settings.log_path, poll_interval=settings.poll_interval))


def _load_snapshot(settings: Settings, name: str) -> StateSnapshot | None:
    document = asyncio.run(FileStoreBackend(settings.snapshot_path(name)).read())
    if document is None:
        return None
    return StateSnapshot.from_document(document)


def _preview(event: IndexedEvent) -> str:
    text = json.dumps(event.payload, default=str)
    if len(text) > PAYLOAD_PREVIEW_CHARS:
        text = text[: PAYLOAD_PREVIEW_CHARS - 3] + "..."
    return text


@click.group()
@click.option(
    "--data-dir",
    envvar=ENV_DATA_PATH,
    type=click.Path(path_type=Path),
    help="Directory holding events.ndjson and snapshots/",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, data_dir, verbose):
    """tiny-es - inspect an append-only event log and its read models."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings.from_env(data_dir=data_dir)


@cli.command()
@click.pass_context
def status(ctx):
    """Show event count and snapshot versions."""
    settings: Settings = ctx.obj["settings"]
    try:
        log = _load_log(settings)
    except EventSourcingError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(1)

    console.print(f"Data dir: [cyan]{escape(str(settings.data_dir))}[/cyan]")
    console.print(f"Events: [bold]{len(log)}[/bold]")

    names = settings.list_snapshots()
    if not names:
        console.print("[dim]No snapshots[/dim]")
        return

    table = Table(title="Snapshots")
    table.add_column("Read model", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Behind", justify="right")

    for name in names:
        try:
            snapshot = _load_snapshot(settings, name)
        except (EventSourcingError, ValueError) as e:
            table.add_row(escape(name), "[red]unreadable[/red]", escape(str(e)[:30]))
            continue
        version = snapshot.version if snapshot else -1
        behind = len(log) - 1 - version
        if behind < 0:
            # snapshot newer than the log, e.g. the log was truncated
            lag = f"[yellow]ahead by {-behind}[/yellow]"
        else:
            lag = str(behind) if behind else "[green]0[/green]"
        table.add_row(escape(name), str(version), lag)

    console.print(table)


@cli.command()
@click.option("-n", "--limit", type=int, default=None, help="Show only the last N events")
@click.option("--start", type=int, default=0, help="First index to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def log(ctx, limit, start, as_json):
    """Show events in log order."""
    settings: Settings = ctx.obj["settings"]
    try:
        event_log = _load_log(settings)
    except EventSourcingError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(1)

    events = event_log.read_all()[max(start, 0):]
    if limit is not None:
        events = events[-limit:] if limit > 0 else []

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in events], indent=2))
        return

    if not events:
        console.print("No events found.")
        return

    table = Table()
    table.add_column("Index", justify="right", style="yellow")
    table.add_column("Event")
    for event in events:
        table.add_row(str(event.index), escape(_preview(event)))
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output the raw snapshot document")
@click.pass_context
def snapshot(ctx, name, as_json):
    """Show the persisted snapshot of read model NAME."""
    settings: Settings = ctx.obj["settings"]
    try:
        snap = _load_snapshot(settings, name)
    except (EventSourcingError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(1)

    if snap is None:
        console.print(f"[yellow]![/yellow] No snapshot for '{escape(name)}'")
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(snap.to_document(), indent=2))
        return

    console.print(f"[bold]{escape(name)}[/bold] at version [yellow]{snap.version}[/yellow]")
    console.print_json(data=snap.state)


def main():
    cli()


if __name__ == "__main__":
    main()
