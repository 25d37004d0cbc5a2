"""Maintenance CLI for the feed store.

Usage:
    python -m feedstore.cli init [--reset]
    python -m feedstore.cli status
    python -m feedstore.cli feeds
    python -m feedstore.cli add https://example.com/feed.xml --title Example
    python -m feedstore.cli rm 3
    python -m feedstore.cli errors --reset
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from feedstore.config import DEFAULT_CONFIG_PATH, load_config
from feedstore.storage.db import FeedStore
from feedstore.storage.migrations import reset_database

console = Console()


def run_async(coro):
    """Run an async function to completion."""
    return asyncio.run(coro)


def _open_store(ctx) -> FeedStore:
    return FeedStore(ctx.obj["db_path"], cache_size_mb=ctx.obj["cache_size_mb"])


@click.group()
@click.option("--db", default=None, help="Database path (overrides config)")
@click.option("--config", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db: Optional[str], config: str, verbose: bool):
    """Feed store maintenance CLI."""
    cfg = load_config(config)
    level = "DEBUG" if verbose else str(cfg["logging"].get("level", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db or cfg["database"]["path"]
    ctx.obj["cache_size_mb"] = int(cfg["database"].get("cache_size_mb", 16))


@cli.command()
@click.option("--reset", is_flag=True, help="Drop all tables and rebuild the schema (destroys data)")
@click.pass_context
def init(ctx, reset: bool):
    """Create the database and apply pending migrations."""
    if reset:
        Path(ctx.obj["db_path"]).parent.mkdir(parents=True, exist_ok=True)
        reset_database(ctx.obj["db_path"])
        console.print(f"[yellow]Database reset:[/yellow] {ctx.obj['db_path']}")

    async def _run():
        async with _open_store(ctx) as store:
            return await store.integrity_check()

    if not run_async(_run()):
        console.print(f"[red]Integrity check failed:[/red] {ctx.obj['db_path']}")
        sys.exit(1)
    console.print(f"[green]Database ready:[/green] {ctx.obj['db_path']}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show store statistics."""

    async def _run():
        async with _open_store(ctx) as store:
            stats = await store.get_stats()

        console.print("\n[bold]Feed Store Status[/bold]")
        console.print(f"  Path: {ctx.obj['db_path']}")
        console.print(f"  Size: {stats['db_size_bytes'] / 1024:.1f} KB")
        console.print(f"  Feeds: {stats['total_feeds']}")
        console.print(f"  Folders: {stats['total_folders']}")
        console.print(f"  Feeds with errors: {stats['feeds_with_errors']}")
        console.print(f"  Feeds missing icons: {stats['feeds_missing_icons']}")

    run_async(_run())


@cli.command()
@click.pass_context
def feeds(ctx):
    """List all feeds."""

    async def _run():
        async with _open_store(ctx) as store:
            all_feeds = await store.list_feeds()
            folders = {f.id: f.title for f in await store.list_folders()}
            errors = await store.get_feed_errors()

        if not all_feeds:
            console.print("[yellow]No feeds.[/yellow]")
            return

        table = Table(title="Feeds")
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Title", max_width=40)
        table.add_column("Folder", style="cyan")
        table.add_column("Feed URL", max_width=50)
        table.add_column("Icon")
        table.add_column("Error", style="red", max_width=40)

        for f in all_feeds:
            table.add_row(
                str(f.id),
                f.title,
                folders.get(f.folder_id, "") if f.folder_id is not None else "",
                f.feed_link,
                "[green]yes" if f.has_icon else "no",
                errors.get(f.id, ""),
            )
        console.print(table)

    run_async(_run())


@cli.command()
@click.argument("feed_link")
@click.option("--title", default="", help="Feed title (defaults to the URL)")
@click.option("--description", default="", help="Feed description")
@click.option("--link", default="", help="Website link")
@click.option("--folder-id", type=int, default=None, help="Folder to file the feed under")
@click.option("--order", "custom_order", default="", help="Custom order token")
@click.pass_context
def add(
    ctx,
    feed_link: str,
    title: str,
    description: str,
    link: str,
    folder_id: Optional[int],
    custom_order: str,
):
    """Add a feed (or move an existing one to --folder-id)."""

    async def _run():
        async with _open_store(ctx) as store:
            return await store.create_feed(
                title, description, link, feed_link, custom_order, folder_id
            )

    feed = run_async(_run())
    if feed is None:
        console.print(f"[red]Error:[/red] could not add {feed_link}")
        sys.exit(1)
    console.print(f"[green]Feed {feed.id}:[/green] {feed.title}")


@cli.command()
@click.argument("feed_id", type=int)
@click.pass_context
def rm(ctx, feed_id: int):
    """Delete a feed by ID."""

    async def _run():
        async with _open_store(ctx) as store:
            return await store.delete_feed(feed_id)

    if not run_async(_run()):
        console.print(f"[red]Error:[/red] no feed with ID {feed_id}")
        sys.exit(1)
    console.print(f"[green]Deleted feed {feed_id}")


@cli.command()
@click.option("--reset", is_flag=True, help="Clear all recorded feed errors")
@click.pass_context
def errors(ctx, reset: bool):
    """Show (or clear) the latest error per feed."""

    async def _run():
        async with _open_store(ctx) as store:
            if reset:
                await store.reset_feed_errors()
                console.print("[green]Feed errors cleared")
                return
            feed_errors = await store.get_feed_errors()

        if not feed_errors:
            console.print("[green]No feed errors.")
            return

        table = Table(title="Feed Errors")
        table.add_column("Feed", justify="right", style="cyan")
        table.add_column("Error")
        for feed_id, message in sorted(feed_errors.items()):
            table.add_row(str(feed_id), message)
        console.print(table)

    run_async(_run())


def main():
    cli()


if __name__ == "__main__":
    main()
