"""Item schema lookup protocol consumed by the identity resolver."""

from __future__ import annotations

from typing import Any, Protocol

from bptflistings.domain.models.item import ItemDescriptor


class ItemSchema(Protocol):
    """Local, synchronous view of the game's item schema."""

    def get_item_by_defindex(self, defindex: int) -> dict[str, Any] | None:
        """Return the schema entry for ``defindex`` or ``None``."""

    def get_name(self, item: ItemDescriptor, proper: bool = True) -> str:
        """Return the display name; ``proper`` allows a leading "The"."""

    def get_quality_name(self, quality: int) -> str | None:
        """Return the quality label such as ``"Unique"``."""


__all__ = ["ItemSchema"]
