"""Show the account's current listings."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from bptflistings.domain.models.item import ListingIntent
from bptflistings.domain.models.listing import Listing
from bptflistings.errors import ListingsError
from bptflistings.interfaces.cli.context import get_cli_context, listing_manager

console = Console()


def _listing_name(listing: Listing) -> str:
    try:
        name = listing.display_name
    except (ListingsError, KeyError, ValueError):
        name = None
    return name or str(listing.item.get("name") or listing.item.get("defindex") or "?")


def _listing_row(listing: Listing) -> dict[str, object]:
    return {
        "id": listing.id,
        "intent": listing.intent.name.lower(),
        "name": _listing_name(listing),
        "sku": listing.get_sku(),
        "price": str(listing.currencies),
        "created": listing.created.isoformat(),
        "bump": listing.bump.isoformat(),
    }


@click.command(name="listings")
@click.option(
    "--intent",
    type=click.Choice(["buy", "sell"], case_sensitive=False),
    default=None,
    help="Only show buy or sell listings.",
)
@click.option("--json-output", is_flag=True, help="Output the listings as JSON.")
@click.pass_context
def listings(ctx: click.Context, intent: str | None, json_output: bool) -> None:
    """Show the listings currently on backpack.tf."""

    async def _fetch() -> tuple[list[Listing], int, int]:
        async with listing_manager(get_cli_context(ctx)) as manager:
            return manager.listings, manager.cap, manager.promotes_remaining

    try:
        current, cap, promotes = asyncio.run(_fetch())
    except ListingsError as exc:
        raise click.ClickException(str(exc)) from exc

    if intent is not None:
        wanted = ListingIntent.parse(intent)
        current = [listing for listing in current if listing.intent is wanted]
    rows = [_listing_row(listing) for listing in sorted(current, key=lambda listing: listing.created)]

    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title=f"Listings ({len(rows)}/{cap}, {promotes} promotes left)")
    for column in ("ID", "Intent", "Item", "Price", "Created"):
        table.add_column(column)
    for row in rows:
        table.add_row(
            str(row["id"]),
            str(row["intent"]),
            str(row["name"]),
            str(row["price"]),
            str(row["created"]),
        )
    console.print(table)
