"""Domain layer definitions."""

from .records import ActivityEntry, TableState

__all__ = [
    "ActivityEntry",
    "TableState",
]
