"""Shared helpers for composing CLI command contexts.

Resolves settings from the group options and builds API clients and
listing managers with the project defaults applied.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import click

from bptflistings.app.config import ListingManagerSettings, load_settings
from bptflistings.errors import ConfigurationError
from bptflistings.infrastructure.http import BackpackApiClient
from bptflistings.infrastructure.schema import JsonItemSchema
from bptflistings.services.manager import ListingManager


@dataclass(frozen=True)
class CLIContext:
    """Options given to the ``bptflistings`` group."""

    config_path: str | None = None
    token: str | None = None
    steamid64: str | None = None
    schema_path: str | None = None

    def settings(self) -> ListingManagerSettings:
        try:
            return load_settings(
                self.config_path,
                token=self.token,
                steamid64=self.steamid64,
                schema_path=self.schema_path,
            )
        except ConfigurationError as exc:
            raise click.UsageError(str(exc)) from exc

    def api_client(self) -> BackpackApiClient:
        settings = self.settings()
        return BackpackApiClient(
            settings.token, base_url=settings.base_url, timeout=settings.request_timeout
        )

    def schema(self, settings: ListingManagerSettings) -> JsonItemSchema:
        if not settings.schema_path:
            raise click.UsageError("An item schema is required (--schema or schema_path)")
        try:
            return JsonItemSchema.from_file(settings.schema_path)
        except (OSError, ValueError) as exc:
            raise click.UsageError(f"Cannot load item schema: {exc}") from exc


@asynccontextmanager
async def listing_manager(cli_context: CLIContext) -> AsyncIterator[ListingManager]:
    """Yield an initialised manager and shut it down afterwards."""

    settings = cli_context.settings()
    manager = ListingManager(settings, cli_context.schema(settings))
    try:
        await manager.init()
        yield manager
    finally:
        await manager.shutdown()


def get_cli_context(ctx: click.Context) -> CLIContext:
    return ctx.find_object(CLIContext) or CLIContext()


__all__ = ["CLIContext", "get_cli_context", "listing_manager"]
