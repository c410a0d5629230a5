"""
Hardware Model

Connection points, item descriptors and the transfer adapter protocol.

The adapter is whatever the host platform exposes for moving items between
the inventories around a transposer. The automation only relies on four calls:
- inventory_size: number of slots of the inventory on a side (None/0 if absent)
- inventory_name: display name of that inventory
- item_in_slot: the stack occupying a slot (1-based)
- transfer_units: move up to `count` units, returns units actually moved
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Protocol


class ConnectionPoint(IntEnum):
    """The six sides of the transposer, keyed the way the host numbers them"""
    BOTTOM = 0
    TOP = 1
    NORTH = 2
    SOUTH = 3
    WEST = 4
    EAST = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_key(cls, key) -> Optional['ConnectionPoint']:
        """
        Resolve a persisted integer key

        Args:
            key: Integer key or its string form

        Returns:
            ConnectionPoint, or None if the key is not one of the six sides
        """
        try:
            return cls(int(key))
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class ItemDescriptor:
    """Item stack occupying a slot"""
    internal_id: str
    display_label: Optional[str] = None
    size: int = 1

    @property
    def description(self) -> str:
        return self.display_label or self.internal_id


class TransferAdapter(Protocol):
    """Transfer-capable hardware (a transposer)"""

    def inventory_size(self, point: ConnectionPoint) -> Optional[int]:
        ...

    def inventory_name(self, point: ConnectionPoint) -> Optional[str]:
        ...

    def item_in_slot(self, point: ConnectionPoint, slot: int) -> Optional[ItemDescriptor]:
        ...

    def transfer_units(self, source: ConnectionPoint, sink: ConnectionPoint, count: int) -> int:
        ...
