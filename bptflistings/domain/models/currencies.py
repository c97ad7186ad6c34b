"""Price value type: keys plus refined metal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# One refined is nine scrap.
SCRAP_PER_REFINED = 9


@dataclass(frozen=True)
class Currencies:
    """An amount of keys and refined metal."""

    keys: int = 0
    metal: float = 0.0

    def __post_init__(self) -> None:
        if self.keys < 0 or self.metal < 0:
            raise ValueError("Currencies cannot be negative")
        object.__setattr__(self, "keys", int(self.keys))
        object.__setattr__(self, "metal", round(float(self.metal), 2))

    @classmethod
    def from_dict(cls, data: "Currencies | dict[str, Any] | None") -> "Currencies":
        if isinstance(data, Currencies):
            return data
        if not data:
            return cls()
        return cls(keys=int(data.get("keys") or 0), metal=float(data.get("metal") or 0))

    def to_dict(self) -> dict[str, float | int]:
        return {"keys": self.keys, "metal": self.metal}

    def to_scrap(self, key_price_refined: float) -> int:
        """Express the whole amount in scrap at the given key price."""
        return round((self.keys * key_price_refined + self.metal) * SCRAP_PER_REFINED)

    def __add__(self, other: object) -> "Currencies":
        if not isinstance(other, Currencies):
            return NotImplemented
        return Currencies(keys=self.keys + other.keys, metal=self.metal + other.metal)

    def __bool__(self) -> bool:
        return bool(self.keys or self.metal)

    def __str__(self) -> str:
        parts: list[str] = []
        if self.keys:
            parts.append(f"{self.keys} {'key' if self.keys == 1 else 'keys'}")
        if self.metal or not parts:
            parts.append(f"{self.metal:g} ref")
        return ", ".join(parts)


__all__ = ["Currencies", "SCRAP_PER_REFINED"]
