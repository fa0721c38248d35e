"""
CLI commands for occurrence-store.

Provides the `occ` command-line interface for listing, creating and updating
occurrences in a vault, and for following vault changes live.
"""

import asyncio
import json
import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from config.loader import ConfigurationLoader
from core.models.config import GlobalSettings, VaultConfig
from core.models.record import Record
from core.search.index import SearchOptions, SortOrder
from core.store import OccurrenceStore, OccurrenceStoreError, StoreEvent
from core.vault import FileSystemVault, VaultError

from . import __version__

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.version_option(version=__version__, prog_name="occ")
@click.option(
    '--vault', '-V',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Vault directory (default: $OCCURRENCES_VAULT_PATH or the current directory)'
)
@click.option(
    '--log-level',
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help='Logging level (default: $OCCURRENCES_LOG_LEVEL or INFO)'
)
@click.pass_context
def main(ctx: click.Context, vault: Optional[Path], log_level: Optional[str]):
    """
    Occurrences CLI.

    Search and manage dated occurrence notes in a markdown vault.
    """
    try:
        settings = GlobalSettings()
    except ValidationError as e:
        console.print(f"[red]❌ Invalid environment settings: {e}[/red]")
        sys.exit(1)

    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    ctx.ensure_object(dict)
    ctx.obj['loader'] = ConfigurationLoader(settings)
    ctx.obj['vault_path'] = vault


def _load_config(ctx: click.Context) -> VaultConfig:
    loader: ConfigurationLoader = ctx.obj['loader']
    try:
        return loader.load_vault_config(ctx.obj['vault_path'])
    except ValueError as e:
        console.print(f"[red]❌ Failed to load configuration: {e}[/red]")
        sys.exit(1)


async def _open_store(config: VaultConfig, watch: bool = False) -> Tuple[FileSystemVault, OccurrenceStore]:
    """Start a filesystem vault and a loaded store on top of it"""
    vault = FileSystemVault(config, watch=watch)
    await vault.start()
    store = OccurrenceStore(vault, config.store)
    await store.start()
    await store.load()
    return vault, store


async def _close_store(vault: FileSystemVault, store: OccurrenceStore) -> None:
    await store.stop()
    await vault.stop()


def _parse_iso(ctx, param, value: Optional[str]) -> Optional[datetime]:
    """Click callback for ISO-8601 options"""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not an ISO-8601 date/time")
    return parsed if parsed.tzinfo else parsed.astimezone()


def _is_bare_date(value: str) -> bool:
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def _end_of_day(value: datetime) -> datetime:
    return value + timedelta(days=1) - timedelta(microseconds=1)


def _parse_iso_until(ctx, param, value: Optional[str]) -> Optional[datetime]:
    """Click callback for inclusive upper bounds: a bare date covers the whole day"""
    parsed = _parse_iso(ctx, param, value)
    if parsed is not None and _is_bare_date(value):
        return _end_of_day(parsed)
    return parsed


def _format_when(record: Record) -> str:
    if record.timestamp is None:
        return "[red]undated[/red]"
    return record.timestamp.strftime("%Y-%m-%d %H:%M")


def _print_records(records: List[Record], title: str) -> None:
    table = Table(title=title)
    table.add_column("When", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Tags", style="magenta")
    table.add_column("Status", style="dim")

    for record in records:
        status = "[yellow]inbox[/yellow]" if record.needs_processing else "[green]processed[/green]"
        table.add_row(_format_when(record), record.title, ", ".join(record.tags), status)

    console.print(table)


@main.command()
@click.option('--force', '-f', is_flag=True, help='Overwrite existing configuration')
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Write a default configuration and create the occurrences folder."""
    loader: ConfigurationLoader = ctx.obj['loader']
    try:
        config = loader.setup_vault(loader.resolve_vault_path(ctx.obj['vault_path']), overwrite=force)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Vault ready at {config.path}[/green]")
    console.print(f"[dim]Occurrences folder: {config.store.folder}[/dim]")
    console.print(f"[dim]Configuration: {config.get_config_file()}[/dim]")


@main.command(name="list")
@click.option('--query', '-q', help='Fuzzy title search')
@click.option('--tag', '-t', 'tags', multiple=True, help='Only occurrences with this tag (repeatable, any match)')
@click.option('--links-to', help='Only occurrences linking to this note path')
@click.option('--inbox/--processed', 'needs_processing', default=None, help='Filter by processing state')
@click.option('--from', 'date_from', callback=_parse_iso, help='Earliest occurrence time (ISO-8601)')
@click.option('--to', 'date_to', callback=_parse_iso_until, help='Latest occurrence time (ISO-8601, inclusive)')
@click.option('--asc', is_flag=True, help='Oldest first')
@click.option('--limit', '-n', type=click.IntRange(min=1), help='Page size')
@click.option('--offset', type=click.IntRange(min=0), default=0, help='Number of results to skip')
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.pass_context
def list_occurrences(
    ctx: click.Context,
    query: Optional[str],
    tags: Tuple[str, ...],
    links_to: Optional[str],
    needs_processing: Optional[bool],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
    asc: bool,
    limit: Optional[int],
    offset: int,
    as_json: bool
):
    """Search occurrences."""
    config = _load_config(ctx)

    try:
        options = SearchOptions(
            query=query,
            tags=list(tags),
            links_to=links_to,
            needs_processing=needs_processing,
            date_from=date_from,
            date_to=date_to,
            sort_order=SortOrder.ASC if asc else SortOrder.DESC,
            limit=limit,
            offset=offset
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid search options: {e}[/red]")
        sys.exit(1)

    async def _search():
        vault, store = await _open_store(config)
        try:
            return store.search(options)
        finally:
            await _close_store(vault, store)

    result = asyncio.run(_search())

    if as_json:
        click.echo(json.dumps(result.model_dump(mode='json'), indent=2, ensure_ascii=False))
        return

    if not result.items:
        console.print("[yellow]No occurrences found[/yellow]")
        return

    first = result.offset + 1
    last = result.offset + len(result.items)
    _print_records(result.items, f"Occurrences {first}-{last} of {result.total}")
    if result.has_more:
        console.print(f"[dim]More results: --offset {last}[/dim]")


@main.command()
@click.argument('title')
@click.option('--at', 'timestamp', callback=_parse_iso, help='When it happened (ISO-8601, default: now)')
@click.option('--tag', '-t', 'tags', multiple=True, help='Tag (repeatable)')
@click.option('--participant', '-p', 'participants', multiple=True, help='Participant note (repeatable)')
@click.option('--processed', is_flag=True, help='Mark as already processed')
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    timestamp: Optional[datetime],
    tags: Tuple[str, ...],
    participants: Tuple[str, ...],
    processed: bool
):
    """Create a new occurrence note."""
    config = _load_config(ctx)

    properties = {"title": title, "tags": list(tags), "participants": list(participants)}
    if timestamp is not None:
        properties["timestamp"] = timestamp
    if processed:
        properties["needs_processing"] = False

    async def _create():
        store = OccurrenceStore(FileSystemVault(config, watch=False), config.store)
        return await store.create(properties)

    try:
        file = asyncio.run(_create())
    except (OccurrenceStoreError, VaultError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Created {file.path}[/green]")


@main.command()
@click.argument('path')
@click.option('--title', help='New title (renames the note)')
@click.option('--at', 'timestamp', callback=_parse_iso, help='New occurrence time (renames the note)')
@click.option('--inbox/--processed', 'needs_processing', default=None, help='Set processing state')
@click.option('--tag', '-t', 'tags', multiple=True, help='Replace tags (repeatable)')
@click.pass_context
def update(
    ctx: click.Context,
    path: str,
    title: Optional[str],
    timestamp: Optional[datetime],
    needs_processing: Optional[bool],
    tags: Tuple[str, ...]
):
    """Update an occurrence by its vault path."""
    config = _load_config(ctx)

    changes = {}
    if title is not None:
        changes["title"] = title
    if timestamp is not None:
        changes["timestamp"] = timestamp
    if needs_processing is not None:
        changes["needs_processing"] = needs_processing
    if tags:
        changes["tags"] = list(tags)

    if not changes:
        console.print("[yellow]⚠️  Nothing to update[/yellow]")
        return

    async def _update():
        vault, store = await _open_store(config)
        try:
            return await store.update(path, changes)
        finally:
            await _close_store(vault, store)

    try:
        record = asyncio.run(_update())
    except (OccurrenceStoreError, VaultError, ValidationError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Updated {record.id}[/green]")


@main.command()
@click.argument('path')
@click.pass_context
def delete(ctx: click.Context, path: str):
    """Move an occurrence note to the vault trash."""
    config = _load_config(ctx)

    async def _delete():
        vault, store = await _open_store(config)
        try:
            await store.delete(path)
        finally:
            await _close_store(vault, store)

    try:
        asyncio.run(_delete())
    except (OccurrenceStoreError, VaultError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Moved {path} to {config.trash_folder}/[/green]")


@main.command()
@click.pass_context
def tags(ctx: click.Context):
    """List tags used by occurrences."""
    config = _load_config(ctx)

    async def _tags():
        vault, store = await _open_store(config)
        try:
            return store.index.tag_index
        finally:
            await _close_store(vault, store)

    tag_index = asyncio.run(_tags())
    if not tag_index:
        console.print("[yellow]No tags found[/yellow]")
        return

    table = Table(title="Occurrence Tags")
    table.add_column("Tag", style="magenta")
    table.add_column("Occurrences", style="cyan", justify="right")
    for tag in sorted(tag_index):
        table.add_row(tag, str(len(tag_index[tag])))
    console.print(table)


@main.command()
@click.pass_context
def watch(ctx: click.Context):
    """Follow vault changes and print occurrence events until interrupted."""
    config = _load_config(ctx)

    def _printer(label: str, style: str):
        def handler(record: Optional[Record]) -> None:
            if record is not None:
                console.print(f"[{style}]{label}[/{style}] {record.id}")
        return handler

    async def _watch():
        vault, store = await _open_store(config, watch=True)
        store.subscribe(StoreEvent.ITEM_ADDED, _printer("added", "green"))
        store.subscribe(StoreEvent.ITEM_UPDATED, _printer("updated", "blue"))
        store.subscribe(StoreEvent.ITEM_REMOVED, _printer("removed", "red"))
        console.print(f"[blue]👀 Watching {config.path} ({len(store)} occurrences). Press Ctrl+C to stop.[/blue]")
        try:
            await asyncio.Event().wait()
        finally:
            await _close_store(vault, store)

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching[/dim]")


@main.command(name="config")
@click.option('--json', 'as_json', is_flag=True, help='Print configuration as JSON')
@click.pass_context
def show_config(ctx: click.Context, as_json: bool):
    """Show the effective configuration."""
    config = _load_config(ctx)
    data = config.to_dict()

    if as_json:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    table = Table(title="Occurrences Configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("vault", data['path'])
    table.add_row("trash_folder", data['trash_folder'])
    table.add_row("watch", str(data['watch']))
    for key, value in data['store'].items():
        table.add_row(f"store.{key}", str(value))
    console.print(table)


if __name__ == "__main__":
    main()
