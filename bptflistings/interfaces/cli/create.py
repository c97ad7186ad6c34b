"""Create or update a single listing."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from bptflistings.errors import ListingsError
from bptflistings.interfaces.cli.context import get_cli_context, listing_manager
from bptflistings.services.events import ActionErrorMessage, EventMessage
from bptflistings.services.flush import FlushResult

console = Console()


@click.command(name="create")
@click.option("--sku", default=None, help="SKU of the item to buy (e.g. 5021;6).")
@click.option("--asset-id", default=None, help="Inventory asset id of the item to sell.")
@click.option("--keys", type=int, default=0, show_default=True, help="Price in keys.")
@click.option("--metal", type=float, default=0.0, show_default=True, help="Price in refined metal.")
@click.option("--details", default="", help="Listing comment.")
@click.option(
    "--offers/--no-offers", default=True, show_default=True, help="Accept trade offers."
)
@click.option(
    "--buyout/--no-buyout", default=True, show_default=True, help="Require the listed price."
)
@click.option("--force", is_flag=True, help="Replace a listing created in the last 30 minutes.")
@click.pass_context
def create(
    ctx: click.Context,
    sku: str | None,
    asset_id: str | None,
    keys: int,
    metal: float,
    details: str,
    offers: bool,
    buyout: bool,
    force: bool,
) -> None:
    """Create a buy listing (--sku) or a sell listing (--asset-id)."""

    if (sku is None) == (asset_id is None):
        raise click.UsageError("Give exactly one of --sku or --asset-id")

    listing: dict[str, object] = {
        "intent": "sell" if asset_id is not None else "buy",
        "currencies": {"keys": keys, "metal": metal},
        "details": details,
        "offers": offers,
        "buyout": buyout,
    }
    if asset_id is not None:
        listing["id"] = asset_id
    else:
        listing["sku"] = sku

    errors: list[ActionErrorMessage] = []

    def _collect(event: EventMessage) -> None:
        if isinstance(event, ActionErrorMessage):
            errors.append(event)

    async def _create() -> FlushResult | None:
        async with listing_manager(get_cli_context(ctx)) as manager:
            manager.subscribe(_collect)
            manager.create_listing(listing, force=force)
            return await manager.process_actions()

    try:
        result = asyncio.run(_create())
    except ListingsError as exc:
        raise click.ClickException(str(exc)) from exc

    for error in errors:
        console.print(f"[red]{error.phase} failed for {error.identity}: {error.reason}[/red]")
    if result is not None and result.created:
        console.print(f"[green]Created {', '.join(result.created)}[/green]")
    elif result is not None and result.waiting:
        console.print("[yellow]Item is not in the inventory yet; try again after it syncs.[/yellow]")
