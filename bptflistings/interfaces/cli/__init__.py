"""CLI interface facades for bptflistings.

This package is the home of all Click commands.
"""

from .__main__ import cli
from .create import create
from .heartbeat import heartbeat
from .listings import listings
from .remove import remove
from .run import run

__all__ = ["cli", "create", "heartbeat", "listings", "remove", "run"]
