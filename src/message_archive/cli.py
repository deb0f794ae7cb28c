#!/usr/bin/env python3

import logging
import sys
from typing import Optional

import click
import structlog
from rich.console import Console
from rich.table import Table

from message_archive.errors import ArchiveError
from message_archive.storage.directory import CHUNK_EXT, Directory, open_dir
from message_archive.utils.config import ArchiveSettings, get_default_archive_dir
from message_archive.utils.entity_list import EntityList


console = Console()


def setup_logging(level: str = "INFO"):
    """Set up structured logging on stderr."""
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _open_archive(ctx: click.Context, path: Optional[str]) -> Directory:
    settings: ArchiveSettings = ctx.obj["settings"]
    return open_dir(path or get_default_archive_dir(), scan_subdirectories=settings.scan_subdirectories)


def _chunk_name(name: str) -> str:
    """Accept either a logical name or a filename with the chunk extension."""
    if name.endswith(CHUNK_EXT):
        return name[: -len(CHUNK_EXT)]
    return name


def _fail(action: str, exc: Exception):
    console.print(f"[red]✗ {action}: {exc}[/red]")
    sys.exit(1)


archive_dir_option = click.option(
    "--dir", "archive_dir", type=click.Path(file_okay=False), help="Archive directory (default: $MESSAGE_ARCHIVE_DIR)"
)


@click.group()
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def cli(ctx, log_level):
    """Message Archive - read chunked conversation exports"""
    settings = ArchiveSettings()
    setup_logging(log_level or settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@archive_dir_option
@click.pass_context
def channels(ctx, archive_dir):
    """List the channels of an archive."""
    try:
        chans = _open_archive(ctx, archive_dir).channels()
    except (OSError, ArchiveError) as e:
        _fail("Failed to read channels", e)

    if not chans:
        console.print("[yellow]No channels found in archive[/yellow]")
        return

    table = Table(title=f"Channels ({len(chans)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Members", justify="right")
    table.add_column("Archived")
    for ch in chans:
        table.add_row(ch.id, ch.display_name, str(ch.num_members), "yes" if ch.is_archived else "")
    console.print(table)


@cli.command()
@archive_dir_option
@click.pass_context
def users(ctx, archive_dir):
    """List the users of an archive."""
    try:
        found = _open_archive(ctx, archive_dir).users()
    except (OSError, ArchiveError) as e:
        _fail("Failed to read users", e)

    table = Table(title=f"Users ({len(found)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Real name")
    for u in found:
        name = u.name + (" [dim](deleted)[/dim]" if u.deleted else "")
        table.add_row(u.id, name, u.real_name)
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--channel", "channel_id", help="Channel ID (default: the file name)")
@click.option("--thread", "thread_ts", help="Thread timestamp, to show replies of one thread")
@archive_dir_option
@click.pass_context
def messages(ctx, name, channel_id, thread_ts, archive_dir):
    """Show the messages stored in chunk file NAME."""
    name = _chunk_name(name)
    channel_id = channel_id or name
    try:
        with _open_archive(ctx, archive_dir).open(name) as f:
            if thread_ts:
                msgs = f.all_thread_messages(channel_id, thread_ts)
            else:
                msgs = f.all_messages(channel_id)
    except (OSError, ArchiveError) as e:
        _fail("Failed to read messages", e)

    if not msgs:
        console.print(f"[yellow]No messages for {channel_id} in {name}[/yellow]")
        return

    for msg in msgs:
        console.print(f"[cyan]{msg.timestamp}[/cyan] - [green]{msg.user or 'unknown'}[/green]")
        content = msg.text[:200] + "..." if len(msg.text) > 200 else msg.text
        console.print(f"  {content}")
        if msg.is_thread_parent():
            console.print(f"  [yellow]Thread: {msg.reply_count} replies[/yellow]")
        for att in msg.files:
            console.print(f"  [yellow]File:[/yellow] {att.name} ({att.mimetype}, {att.size:,} bytes)")


@cli.command()
@click.argument("name")
@archive_dir_option
@click.pass_context
def inspect(ctx, name, archive_dir):
    """Show what chunk file NAME contains, grouped by identity."""
    name = _chunk_name(name)
    try:
        with _open_archive(ctx, archive_dir).open(name) as f:
            total = len(f)
            counts = f.count_by_id()
    except (OSError, ArchiveError) as e:
        _fail("Failed to inspect chunk file", e)

    table = Table(title=f"{name}{CHUNK_EXT}: {total} chunks")
    table.add_column("Identity", style="cyan")
    table.add_column("Chunks", justify="right")
    for chunk_id, n in counts.items():
        table.add_row(chunk_id, str(n))
    console.print(table)


@cli.command()
@click.argument("entries", nargs=-1, required=True)
def entities(entries):
    """Resolve an inclusion/exclusion list (^ID excludes, @FILE reads a list)."""
    try:
        el = EntityList.from_entries(entries)
    except (OSError, ValueError) as e:
        _fail("Invalid entity list", e)

    for ent in el.include:
        console.print(f"[green]+ {ent}[/green]")
    for ent in el.exclude:
        console.print(f"[red]- {ent}[/red]")


if __name__ == "__main__":
    cli()
