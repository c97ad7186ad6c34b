"""Interface layer for bptflistings.

Packages under ``bptflistings.interfaces`` expose boundary adapters such as
CLI commands.
"""

from . import cli

__all__ = ["cli"]
