"""Schema adapters."""

from .json_schema import JsonItemSchema

__all__ = ["JsonItemSchema"]
