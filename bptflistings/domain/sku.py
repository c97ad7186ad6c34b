"""Conversion between SKU strings and :class:`ItemDescriptor`.

A SKU is ``defindex;quality`` followed by optional tokens::

    u<effect>  australium  uncraftable  untradable  w<wear>  pk<paintkit>
    strange  kt-<tier>  td-<target>  festive  n<craftnumber>  c<series>
    od-<output>  oq-<output quality>

Tokens are emitted in that order; unknown tokens are ignored when parsing.
"""

from __future__ import annotations

import re

from bptflistings.domain.models.item import STRANGE_QUALITY, ItemDescriptor

_PREFIXED_INT = (
    ("od-", "output"),
    ("oq-", "output_quality"),
    ("kt-", "killstreak"),
    ("td-", "target"),
    ("pk", "paintkit"),
    ("u", "effect"),
    ("w", "wear"),
    ("n", "craftnumber"),
    ("c", "crateseries"),
)

_FLAG_TOKENS = {
    "australium": ("australium", True),
    "festive": ("festive", True),
    "uncraftable": ("craftable", False),
    "untradable": ("tradable", False),
}

_INT_RE = re.compile(r"^-?\d+$")


def from_string(sku: str) -> ItemDescriptor:
    """Parse ``sku`` into a descriptor.

    Raises:
        ValueError: If the defindex or quality part is not an integer.
    """
    parts = [part.strip() for part in sku.strip().split(";")]
    if len(parts) < 2 or not _INT_RE.match(parts[0]) or not _INT_RE.match(parts[1]):
        raise ValueError(f"Invalid SKU: {sku!r}")

    values: dict[str, object] = {"defindex": int(parts[0]), "quality": int(parts[1])}
    for token in parts[2:]:
        if token in _FLAG_TOKENS:
            name, flag = _FLAG_TOKENS[token]
            values[name] = flag
            continue
        if token == "strange":
            values["quality2"] = STRANGE_QUALITY
            continue
        for prefix, name in _PREFIXED_INT:
            if token.startswith(prefix) and _INT_RE.match(token[len(prefix):]):
                values[name] = int(token[len(prefix):])
                break
    return ItemDescriptor.from_dict(values)


def to_string(item: ItemDescriptor) -> str:
    """Format ``item`` as a SKU string."""
    parts = [str(item.defindex), str(item.quality)]
    if item.effect is not None:
        parts.append(f"u{item.effect}")
    if item.australium:
        parts.append("australium")
    if not item.craftable:
        parts.append("uncraftable")
    if not item.tradable:
        parts.append("untradable")
    if item.wear is not None:
        parts.append(f"w{item.wear}")
    if item.paintkit is not None:
        parts.append(f"pk{item.paintkit}")
    if item.quality2 == STRANGE_QUALITY:
        parts.append("strange")
    if item.killstreak:
        parts.append(f"kt-{item.killstreak}")
    if item.target is not None:
        parts.append(f"td-{item.target}")
    if item.festive:
        parts.append("festive")
    if item.craftnumber is not None:
        parts.append(f"n{item.craftnumber}")
    if item.crateseries is not None:
        parts.append(f"c{item.crateseries}")
    if item.output is not None:
        parts.append(f"od-{item.output}")
    if item.output_quality is not None:
        parts.append(f"oq-{item.output_quality}")
    return ";".join(parts)


__all__ = ["from_string", "to_string"]
