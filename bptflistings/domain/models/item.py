"""Item descriptors and listing intents."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from enum import IntEnum
from typing import Any

UNIQUE_QUALITY = 6
STRANGE_QUALITY = 11


class ListingIntent(IntEnum):
    """Whether a listing buys or sells. Values match the API's ``intent``."""

    BUY = 0
    SELL = 1

    @classmethod
    def parse(cls, value: "ListingIntent | int | str") -> "ListingIntent":
        """Accept the enum, its integer value or a name such as ``"sell"``."""
        if isinstance(value, ListingIntent):
            return value
        if isinstance(value, str) and not value.isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown listing intent: {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class ItemDescriptor:
    """Compact description of a TF2 item, equivalent to a SKU.

    Fields left at their defaults are omitted from the SKU, so two
    descriptors built from ``{"defindex": 5021, "quality": 6}`` and
    ``{"defindex": 5021, "quality": 6, "craftable": True}`` compare equal.
    """

    defindex: int
    quality: int = UNIQUE_QUALITY
    craftable: bool = True
    tradable: bool = True
    killstreak: int = 0
    australium: bool = False
    festive: bool = False
    effect: int | None = None
    paintkit: int | None = None
    wear: int | None = None
    quality2: int | None = None
    craftnumber: int | None = None
    crateseries: int | None = None
    target: int | None = None
    output: int | None = None
    output_quality: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ItemDescriptor":
        """Build a descriptor from a dict, ignoring unknown keys.

        ``outputQuality`` is accepted as an alias of ``output_quality`` and
        ``None`` values fall back to the field defaults.
        """
        if "defindex" not in data or data["defindex"] is None:
            raise ValueError("Item descriptor requires a defindex")
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key == "outputQuality":
                key = "output_quality"
            if key not in known or value is None:
                continue
            values[key] = value
        values["defindex"] = int(values["defindex"])
        for name in ("quality", "killstreak"):
            if name in values:
                values[name] = int(values[name])
        for name in ("craftable", "tradable", "australium", "festive"):
            if name in values:
                values[name] = bool(values[name])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_defaults_for_naming(self) -> "ItemDescriptor":
        """Return the placeholder the marketplace names buy orders after.

        Quality, craftability and effect travel as separate attributes on the
        API, so they are reset here and only modifiers that change the item
        name are kept.
        """
        return replace(
            self,
            quality=UNIQUE_QUALITY,
            craftable=True,
            tradable=True,
            effect=None,
            craftnumber=None,
        )


__all__ = ["ItemDescriptor", "ListingIntent", "STRANGE_QUALITY", "UNIQUE_QUALITY"]
