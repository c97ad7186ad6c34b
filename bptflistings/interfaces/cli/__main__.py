"""Entry point for running the bptflistings CLI.

This module defines the top-level Click group; ``python -m
bptflistings.interfaces.cli`` and the ``bptflistings`` console script both
invoke it.
"""

import click

from bptflistings.infrastructure.observability import configure_logging

from .context import CLIContext
from .create import create
from .heartbeat import heartbeat
from .listings import listings
from .remove import remove
from .run import run


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    default=None,
    help="JSON settings file.",
)
@click.option("--token", default=None, help="backpack.tf access token (or BPTF_ACCESS_TOKEN).")
@click.option("--steamid", default=None, help="SteamID64 of the account (or BPTF_STEAMID64).")
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    default=None,
    help="Item schema JSON file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    token: str | None,
    steamid: str | None,
    schema_path: str | None,
    log_level: str,
) -> None:
    """bptflistings command-line interface."""
    configure_logging(level=log_level.upper())
    ctx.obj = CLIContext(
        config_path=config_path,
        token=token,
        steamid64=steamid,
        schema_path=schema_path,
    )


cli.add_command(listings)
cli.add_command(heartbeat)
cli.add_command(create)
cli.add_command(remove)
cli.add_command(run)


if __name__ == "__main__":
    cli()
