"""Run the listing manager and print its events."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console

from bptflistings.errors import ListingsError
from bptflistings.infrastructure.observability import format_prometheus
from bptflistings.interfaces.cli.context import get_cli_context, listing_manager
from bptflistings.services.events import EventMessage

console = Console()


@click.command(name="run")
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Stop after this many seconds. Runs until interrupted when omitted.",
)
@click.option("--metrics", is_flag=True, help="Print collected metrics when stopping.")
@click.pass_context
def run(ctx: click.Context, duration: float | None, metrics: bool) -> None:
    """Keep listings bumped and in sync, printing every event."""

    def _print_event(event: EventMessage) -> None:
        click.echo(json.dumps(event.to_wire()))

    async def _run() -> None:
        async with listing_manager(get_cli_context(ctx)) as manager:
            manager.subscribe(_print_event)
            console.print(f"[green]Managing {len(manager.listings)} listing(s).[/green]")
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")
    except ListingsError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        if metrics:
            click.echo(format_prometheus())
