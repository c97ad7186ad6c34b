"""Item schema backed by a JSON document.

The document mirrors the parts of the Steam ``GetSchemaItems`` response that
naming needs::

    {
        "items": [{"defindex": 5021, "item_name": "Mann Co. Supply Crate Key",
                   "proper_name": false}],
        "qualities": {"6": "Unique", "11": "Strange"},
        "effects": {"13": "Burning Flames"},
        "paintkits": {"102": "Night Owl"}
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from bptflistings.domain.models.item import ItemDescriptor, UNIQUE_QUALITY

UNUSUAL_QUALITY = 5
DECORATED_QUALITY = 15

KILLSTREAK_TIERS = {1: "Killstreak", 2: "Specialized Killstreak", 3: "Professional Killstreak"}
WEAR_NAMES = {
    1: "Factory New",
    2: "Minimal Wear",
    3: "Field-Tested",
    4: "Well-Worn",
    5: "Battle Scarred",
}


def _int_keyed(mapping: dict[str, Any] | None) -> dict[int, str]:
    return {int(key): str(value) for key, value in (mapping or {}).items()}


class JsonItemSchema:
    """In-memory :class:`~bptflistings.domain.schema.ItemSchema` implementation."""

    def __init__(
        self,
        items: list[dict[str, Any]],
        *,
        qualities: dict[str, Any] | None = None,
        effects: dict[str, Any] | None = None,
        paintkits: dict[str, Any] | None = None,
    ) -> None:
        self._items = {int(item["defindex"]): item for item in items}
        self._qualities = _int_keyed(qualities)
        self._effects = _int_keyed(effects)
        self._paintkits = _int_keyed(paintkits)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JsonItemSchema":
        return cls(
            data.get("items", []),
            qualities=data.get("qualities"),
            effects=data.get("effects"),
            paintkits=data.get("paintkits"),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "JsonItemSchema":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def get_item_by_defindex(self, defindex: int) -> dict[str, Any] | None:
        return self._items.get(int(defindex))

    def get_quality_name(self, quality: int) -> str | None:
        return self._qualities.get(int(quality))

    def get_name(self, item: ItemDescriptor, proper: bool = True) -> str:
        schema_item = self.get_item_by_defindex(item.defindex)
        if schema_item is None:
            raise KeyError(f"Unknown defindex {item.defindex}")

        prefix: list[str] = []
        if not item.tradable:
            prefix.append("Non-Tradable")
        if not item.craftable:
            prefix.append("Non-Craftable")
        if item.quality2 is not None:
            prefix.append(self.get_quality_name(item.quality2) or "")

        hide_quality = item.quality in (UNIQUE_QUALITY, DECORATED_QUALITY) or (
            item.quality == UNUSUAL_QUALITY and item.effect is not None
        )
        if not hide_quality:
            prefix.append(self.get_quality_name(item.quality) or "")
        if item.effect is not None:
            prefix.append(self._effects.get(item.effect, f"Effect #{item.effect}"))
        if item.festive:
            prefix.append("Festivized")
        if item.killstreak:
            prefix.append(KILLSTREAK_TIERS.get(item.killstreak, "Killstreak"))
        if item.target is not None:
            target = self.get_item_by_defindex(item.target)
            if target is not None:
                prefix.append(target["item_name"])
        if item.output_quality is not None and item.output_quality != UNIQUE_QUALITY:
            prefix.append(self.get_quality_name(item.output_quality) or "")
        if item.output is not None:
            output = self.get_item_by_defindex(item.output)
            if output is not None:
                prefix.append(output["item_name"])
        if item.australium:
            prefix.append("Australium")
        if item.paintkit is not None:
            prefix.append(self._paintkits.get(item.paintkit, f"Paintkit #{item.paintkit}") + " |")

        words = [word for word in prefix if word]
        if proper and not words and schema_item.get("proper_name"):
            words.append("The")
        words.append(schema_item["item_name"])

        name = " ".join(words)
        if item.wear is not None and item.wear in WEAR_NAMES:
            name += f" ({WEAR_NAMES[item.wear]})"
        if item.crateseries is not None:
            name += f" #{item.crateseries}"
        if item.craftnumber is not None:
            name += f" #{item.craftnumber}"
        return name


__all__ = ["JsonItemSchema", "KILLSTREAK_TIERS", "WEAR_NAMES"]
