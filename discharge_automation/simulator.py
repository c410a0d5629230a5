"""
Simulated Transposer

In-memory stand-in for the transposer so setup and the discharge loop can be
exercised without the game running.

The simulation keeps just enough state to reproduce what the loop cares about:
- A discharging cube only accepts items that still hold energy, and drains
  them on entry
- A cube whose side is not set to 'Discharge' accepts nothing
- A charger can optionally refill items placed in it

Example usage:
    transposer = build_demo_transposer()
    transposer.transfer_units(ConnectionPoint.TOP, ConnectionPoint.BOTTOM, 1)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from loguru import logger

from .hardware import ConnectionPoint, ItemDescriptor


@dataclass
class SimulatedStack:
    """Item in a slot with its stored energy (0.0 - 1.0)"""
    item: ItemDescriptor
    charge: float = 1.0


@dataclass
class SimulatedInventory:
    """Inventory attached to one side"""
    name: Optional[str]
    slot_count: int = 1
    discharges: bool = False  # cube side configured to 'Discharge'
    accepts_items: bool = True
    recharges: bool = False  # charger refills items placed in it
    slots: Dict[int, SimulatedStack] = field(default_factory=dict)

    def first_occupied(self) -> Optional[int]:
        occupied = sorted(self.slots)
        return occupied[0] if occupied else None

    def first_free(self) -> Optional[int]:
        for slot in range(1, self.slot_count + 1):
            if slot not in self.slots:
                return slot
        return None


class SimulatedTransposer:
    """
    Transfer adapter backed by in-memory inventories

    Attributes:
        inventories: Side -> attached inventory
        transfer_log: (source, sink, requested, moved) for every transfer call
    """

    def __init__(self):
        self.inventories: Dict[ConnectionPoint, SimulatedInventory] = {}
        self.transfer_log: List[Tuple[ConnectionPoint, ConnectionPoint, int, int]] = []

    def attach(
        self,
        point: ConnectionPoint,
        name: Optional[str],
        slot_count: int = 1,
        **options
    ) -> SimulatedInventory:
        """Attach an inventory to a side, replacing whatever was there"""
        inventory = SimulatedInventory(name=name, slot_count=slot_count, **options)
        self.inventories[point] = inventory
        return inventory

    def detach(self, point: ConnectionPoint):
        self.inventories.pop(point, None)

    def put(self, point: ConnectionPoint, slot: int, item: ItemDescriptor, charge: float = 1.0):
        """Place an item directly into a slot"""
        self.inventories[point].slots[slot] = SimulatedStack(item=item, charge=charge)

    def stack_at(self, point: ConnectionPoint, slot: int) -> Optional[SimulatedStack]:
        inventory = self.inventories.get(point)
        return inventory.slots.get(slot) if inventory else None

    # Adapter protocol

    def inventory_size(self, point: ConnectionPoint) -> Optional[int]:
        inventory = self.inventories.get(point)
        return inventory.slot_count if inventory else None

    def inventory_name(self, point: ConnectionPoint) -> Optional[str]:
        inventory = self.inventories.get(point)
        return inventory.name if inventory else None

    def item_in_slot(self, point: ConnectionPoint, slot: int) -> Optional[ItemDescriptor]:
        stack = self.stack_at(point, slot)
        return stack.item if stack else None

    def transfer_units(self, source: ConnectionPoint, sink: ConnectionPoint, count: int) -> int:
        moved = self._move(source, sink, count)
        self.transfer_log.append((source, sink, count, moved))
        return moved

    def _move(self, source: ConnectionPoint, sink: ConnectionPoint, count: int) -> int:
        source_inv = self.inventories.get(source)
        sink_inv = self.inventories.get(sink)
        if source_inv is None or sink_inv is None or count <= 0:
            return 0
        if not sink_inv.accepts_items:
            return 0

        from_slot = source_inv.first_occupied()
        to_slot = sink_inv.first_free()
        if from_slot is None or to_slot is None:
            return 0

        stack = source_inv.slots[from_slot]
        if sink_inv.discharges and stack.charge <= 0:
            # Discharge slot rejects items with nothing left in them
            return 0

        del source_inv.slots[from_slot]
        if sink_inv.discharges:
            stack.charge = 0.0
        if sink_inv.recharges:
            stack.charge = 1.0
        sink_inv.slots[to_slot] = stack

        logger.debug(f"[sim] {stack.item.internal_id}: {source.label} slot {from_slot} -> {sink.label} slot {to_slot}")
        return 1


def build_demo_transposer() -> SimulatedTransposer:
    """
    Charger on top holding a charged energy cube, discharging cube below

    Returns:
        SimulatedTransposer ready for setup and the loop
    """
    transposer = SimulatedTransposer()
    transposer.attach(ConnectionPoint.TOP, "opencomputers:charger", slot_count=1, recharges=True)
    transposer.attach(ConnectionPoint.BOTTOM, "mekanism:energycube", slot_count=2, discharges=True)
    transposer.put(
        ConnectionPoint.TOP,
        1,
        ItemDescriptor("mekanism:energycube", "Basic Energy Cube"),
    )
    return transposer
