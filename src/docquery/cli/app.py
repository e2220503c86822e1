#!/usr/bin/env python3
"""
docquery CLI - Typer-based command-line interface.

Provides commands for:
- Compiling a query to its aggregation pipeline (explain)
- Checking the configured MongoDB connection (ping)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import typer
from pydantic import ValidationError as SettingsError
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from ..config.settings import get_settings
from ..errors import QueryError
from ..pipeline import (
    QueryBuilder,
    equal,
    greater_than,
    greater_than_equal,
    is_ as raw_equal,
    is_in,
    is_not_in,
    lower_than,
    lower_than_equal,
    many,
    not_equal,
    one,
    one_merge_to,
)

app = typer.Typer(
    name="docquery",
    help="docquery - compile and inspect MongoDB aggregation queries",
    add_completion=False,
)

console = Console()


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        from .. import __version__

        console.print(f"docquery version: {__version__}")
        raise typer.Exit()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """
    docquery CLI.

    Use 'docquery COMMAND --help' for command-specific help.
    """
    setup_logging("DEBUG" if verbose else "WARNING")


def parse_value(raw: str) -> Any:
    """JSON literal when it parses (numbers, booleans, null, lists), else the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def split_pair(option: str, raw: str) -> tuple[str, str]:
    field, sep, value = raw.partition("=")
    if not sep or not field:
        raise typer.BadParameter(f"expected FIELD=VALUE, got {raw!r}", param_hint=option)
    return field, value


def split_lookup(option: str, raw: str, parts: int) -> list[str]:
    values = raw.split(":")
    if len(values) != parts or not all(values):
        shape = ":".join(["from", "local", "foreign", "as", "parent"][:parts])
        raise typer.BadParameter(f"expected {shape}, got {raw!r}", param_hint=option)
    return values


def parse_sort(raw: str) -> tuple[str, int]:
    if raw.startswith("-"):
        return raw[1:], -1
    return raw.lstrip("+"), 1


def build_query(
    collection: str,
    is_: list[str],
    eq: list[str],
    ne: list[str],
    in_: list[str],
    nin: list[str],
    lt: list[str],
    lte: list[str],
    gt: list[str],
    gte: list[str],
    text: str | None,
    lookup_one: list[str],
    lookup_merge: list[str],
    lookup_many: list[str],
    sort: list[str],
    group: str | None,
    page: int | None,
    size: int | None,
) -> QueryBuilder:
    """Translate CLI options into builder calls."""
    builder = QueryBuilder(collection)
    scalar_options = [
        ("--is", is_, raw_equal),
        ("--eq", eq, equal),
        ("--ne", ne, not_equal),
        ("--lt", lt, lower_than),
        ("--lte", lte, lower_than_equal),
        ("--gt", gt, greater_than),
        ("--gte", gte, greater_than_equal),
    ]
    for option, values, helper in scalar_options:
        for raw in values:
            field, value = split_pair(option, raw)
            builder.filter([helper(field, parse_value(value))])

    for option, values, helper in (("--in", in_, is_in), ("--nin", nin, is_not_in)):
        for raw in values:
            field, value = split_pair(option, raw)
            builder.filter([helper(field, [parse_value(v) for v in value.split(",")])])

    if text:
        builder.text(text)

    for raw in lookup_one:
        builder.lookup([one(*split_lookup("--one", raw, 4))])
    for raw in lookup_merge:
        builder.lookup([one_merge_to(*split_lookup("--merge", raw, 5))])
    for raw in lookup_many:
        builder.lookup([many(*split_lookup("--many", raw, 4))])

    if sort:
        builder.sort([parse_sort(raw) for raw in sort])
    if group:
        builder.group_by(group, {"count": {"$sum": 1}})
    if page is not None or size is not None:
        builder.paginate(page or 0, size or 20)
    return builder


@app.command()
def explain(
    collection: str = typer.Argument(..., help="Collection to query"),
    is_: list[str] = typer.Option([], "--is", help="Raw equality FIELD=VALUE"),
    eq: list[str] = typer.Option([], "--eq", help="FIELD=VALUE using $eq"),
    ne: list[str] = typer.Option([], "--ne", help="FIELD=VALUE using $ne"),
    in_: list[str] = typer.Option([], "--in", help="FIELD=A,B,C using $in"),
    nin: list[str] = typer.Option([], "--nin", help="FIELD=A,B,C using $nin"),
    lt: list[str] = typer.Option([], "--lt", help="FIELD=VALUE using $lt"),
    lte: list[str] = typer.Option([], "--lte", help="FIELD=VALUE using $lte"),
    gt: list[str] = typer.Option([], "--gt", help="FIELD=VALUE using $gt"),
    gte: list[str] = typer.Option([], "--gte", help="FIELD=VALUE using $gte"),
    text: str | None = typer.Option(None, "--text", help="Free-text $search"),
    lookup_one: list[str] = typer.Option([], "--one", help="from:local:foreign:as"),
    lookup_merge: list[str] = typer.Option([], "--merge", help="from:local:foreign:as:parent"),
    lookup_many: list[str] = typer.Option([], "--many", help="from:local:foreign:as"),
    sort: list[str] = typer.Option([], "--sort", "-s", help="FIELD ascending, -FIELD descending"),
    group: str | None = typer.Option(None, "--group", help="Group by FIELD with a count"),
    page: int | None = typer.Option(None, "--page", "-p", help="Zero-based page index"),
    size: int | None = typer.Option(None, "--size", "-n", help="Page size"),
):
    """
    Print the aggregation pipeline a query compiles to.

    Example: docquery explain member --eq status=active --one user:user_id:_id:user -s -created_at
    """
    try:
        builder = build_query(
            collection, is_, eq, ne, in_, nin, lt, lte, gt, gte, text,
            lookup_one, lookup_merge, lookup_many, sort, group, page, size,
        )
    except QueryError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    pipeline = builder.build_pipeline()
    console.print(f"[bold blue]{collection}[/bold blue] ({len(pipeline)} stages)\n")
    console.print(Syntax(json.dumps(pipeline, indent=2, default=str), "json"))


@app.command()
def ping():
    """
    Check the configured MongoDB connection.

    Reads MONGODB_URI and friends from the environment or .env.
    """
    from ..store import create_client, ping as ping_store

    async def _ping():
        settings = get_settings()
        logging.getLogger("docquery").setLevel(settings.log_level)
        client = create_client(settings)
        try:
            info = await ping_store(client)
        finally:
            await client.close()

        table = Table(title="MongoDB", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Database", settings.database_name)
        table.add_row("Mode", settings.mode)
        table.add_row("Server version", str(info.get("version", "unknown")))
        console.print(table)

    try:
        asyncio.run(_ping())
    except SettingsError as e:
        console.print(f"[red]Invalid settings (is MONGODB_URI set?): {e}[/red]")
        raise typer.Exit(1)
    except QueryError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def run():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    run()
