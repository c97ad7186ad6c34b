"""Item identity resolution.

Every queued action is keyed by an identity string. Buy orders are keyed by
the attributes backpack.tf uses to tell buy orders apart (canonical item name,
quality, craftability and unusual effect), so two requests the marketplace
would treat as the same order collapse into one. Sell orders are keyed by the
inventory asset id because every physical item is unique.
"""

from __future__ import annotations

from typing import Any, Mapping

from bptflistings.domain import sku
from bptflistings.domain.models.item import ItemDescriptor, ListingIntent
from bptflistings.domain.schema import ItemSchema
from bptflistings.errors import InvalidItemError

ATTR_EFFECT = 134
ATTR_WEAR = 725
ATTR_PAINTKIT = 834
ATTR_KILLSTREAK_TIER = 2025
ATTR_AUSTRALIUM = 2027
ATTR_FESTIVE = 2053

ItemInput = ItemDescriptor | str | Mapping[str, Any]


def quantize_wear(value: float | str) -> int:
    """Map the wear float (0.2 .. 1.0) onto the 1..5 wear tiers.

    Truncates; ``0.6`` becomes tier 3, ``0.79`` stays tier 3.
    """
    return int(float(value) * 5)


def _attribute_value(attribute: Mapping[str, Any]) -> Any:
    if attribute.get("float_value") is not None:
        return attribute["float_value"]
    return attribute.get("value")


def descriptor_from_input(value: ItemInput) -> ItemDescriptor:
    """Accept a descriptor, a SKU string or a dict with ``sku`` or ``defindex``."""
    if isinstance(value, ItemDescriptor):
        return value
    if isinstance(value, str):
        return sku.from_string(value)
    if isinstance(value, Mapping):
        if value.get("sku"):
            return sku.from_string(str(value["sku"]))
        return ItemDescriptor.from_dict(dict(value))
    raise TypeError(f"Cannot build an item descriptor from {type(value).__name__}")


def descriptor_from_listing_item(item: Mapping[str, Any]) -> ItemDescriptor:
    """Build a descriptor from the ``item`` object of a listing returned by the API."""
    values: dict[str, Any] = {
        "defindex": item["defindex"],
        "quality": item.get("quality", 6),
        "craftable": item.get("flag_cannot_craft") is not True,
        "tradable": item.get("flag_cannot_trade") is not True,
    }
    for attribute in item.get("attributes") or []:
        defindex = int(attribute.get("defindex", -1))
        raw = _attribute_value(attribute)
        if defindex == ATTR_KILLSTREAK_TIER:
            values["killstreak"] = int(float(raw))
        elif defindex == ATTR_AUSTRALIUM:
            values["australium"] = True
        elif defindex == ATTR_EFFECT:
            values["effect"] = int(float(raw))
        elif defindex == ATTR_PAINTKIT:
            values["paintkit"] = int(float(raw))
        elif defindex == ATTR_WEAR:
            values["wear"] = quantize_wear(raw)
        elif defindex == ATTR_FESTIVE:
            values["festive"] = True
    return ItemDescriptor.from_dict(values)


def buy_identity(remote_item: Mapping[str, Any]) -> str:
    """Identity key of a buy order from its remote attribute bag."""
    craftable = 0 if remote_item.get("craftable") == 0 else 1
    effect = remote_item.get("priceindex")
    return "buy:{};{};{};{}".format(
        remote_item["item_name"],
        int(remote_item["quality"]),
        craftable,
        "" if effect is None else int(effect),
    )


def sell_identity(asset_id: str | int) -> str:
    return f"sell:{asset_id}"


class IdentityResolver:
    """Translates item descriptors into remote attributes and identity keys."""

    def __init__(self, schema: ItemSchema) -> None:
        self.schema = schema

    def to_remote_item(self, item: ItemInput) -> dict[str, Any]:
        """Return the attribute bag backpack.tf expects for a buy order.

        Raises:
            InvalidItemError: If the defindex is unknown to the schema.
        """
        descriptor = descriptor_from_input(item)
        if self.schema.get_item_by_defindex(descriptor.defindex) is None:
            raise InvalidItemError(
                f"Unknown defindex {descriptor.defindex}", defindex=descriptor.defindex
            )
        # bptf names buy orders after item_name and ignores proper_name
        name = self.schema.get_name(descriptor.with_defaults_for_naming(), proper=False)
        remote: dict[str, Any] = {"item_name": name, "quality": descriptor.quality}
        if not descriptor.craftable:
            remote["craftable"] = 0
        if descriptor.effect is not None:
            remote["priceindex"] = descriptor.effect
        return remote

    def resolve_identity(
        self, intent: ListingIntent | int | str, item: ItemInput | int
    ) -> str:
        """Return the deduplication key for ``item`` listed with ``intent``.

        For sell intent ``item`` is the asset id.
        """
        intent = ListingIntent.parse(intent)
        if intent is ListingIntent.SELL:
            if isinstance(item, (ItemDescriptor, Mapping)):
                raise ValueError("Sell listings are identified by their asset id")
            return sell_identity(item)
        if isinstance(item, int):
            raise ValueError("Buy listings need an item descriptor, not an id")
        return buy_identity(self.to_remote_item(item))

    def identity_of_listing_item(
        self, intent: ListingIntent | int, item: Mapping[str, Any]
    ) -> str:
        """Identity key of a live listing's ``item`` object."""
        if ListingIntent.parse(intent) is ListingIntent.SELL:
            return sell_identity(item["id"])
        return buy_identity(self.to_remote_item(descriptor_from_listing_item(item)))


__all__ = [
    "ATTR_AUSTRALIUM",
    "ATTR_EFFECT",
    "ATTR_FESTIVE",
    "ATTR_KILLSTREAK_TIER",
    "ATTR_PAINTKIT",
    "ATTR_WEAR",
    "IdentityResolver",
    "buy_identity",
    "descriptor_from_input",
    "descriptor_from_listing_item",
    "quantize_wear",
    "sell_identity",
]
