"""
bptflistings package initializer.

This package manages a seller's classifieds on backpack.tf: it queues listing
creations and removals, flushes them to the API in batches and keeps a local
cache of the account's listings in sync with the server.

The package exposes a ``__version__`` attribute indicating the installed
version. The version is read from pyproject.toml via importlib.metadata;
this is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bptflistings")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
