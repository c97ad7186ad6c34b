"""Bump all listings once."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from bptflistings.errors import ListingsError
from bptflistings.interfaces.cli.context import get_cli_context

console = Console()


@click.command(name="heartbeat")
@click.pass_context
def heartbeat(ctx: click.Context) -> None:
    """Send a heartbeat, bumping every listing."""

    async def _send() -> int:
        async with get_cli_context(ctx).api_client() as client:
            return await client.send_heartbeat()

    try:
        bumped = asyncio.run(_send())
    except ListingsError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Bumped {bumped} listing(s).[/green]")
