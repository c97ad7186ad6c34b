"""Remove listings by id."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from bptflistings.errors import ListingsError
from bptflistings.interfaces.cli.context import get_cli_context, listing_manager
from bptflistings.services.flush import FlushResult

console = Console()


@click.command(name="remove")
@click.argument("listing_ids", nargs=-1, required=True)
@click.pass_context
def remove(ctx: click.Context, listing_ids: tuple[str, ...]) -> None:
    """Remove the listings with the given ids."""

    async def _remove() -> FlushResult | None:
        async with listing_manager(get_cli_context(ctx)) as manager:
            manager.remove_listings(listing_ids)
            return await manager.process_actions()

    try:
        result = asyncio.run(_remove())
    except ListingsError as exc:
        raise click.ClickException(str(exc)) from exc

    removed = result.removed if result is not None else []
    console.print(f"Removed {len(removed)} of {len(listing_ids)} listing(s).")
    for error in result.errors if result is not None else []:
        console.print(f"[red]{error['identity']}: {error['reason']}[/red]")
