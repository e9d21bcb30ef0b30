"""Core type definitions."""

from typing import Literal, TypedDict

# Menu placement of a navigation item (e.g., site header or footer)
MenuLocation = Literal["HEADER", "FOOTER", "SIDEBAR"]
MENU_LOCATIONS: tuple[MenuLocation, ...] = ("HEADER", "FOOTER", "SIDEBAR")


class ItemUpdate(TypedDict):
    """Position of one item as submitted to the backing store."""

    id: int
    order: int
    parent_id: int | None


def is_int(value: object) -> bool:
    """Whether value is an integer (booleans excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: object) -> bool:
    """Whether value is an int or float (booleans excluded)."""
    return isinstance(value, int | float) and not isinstance(value, bool)
