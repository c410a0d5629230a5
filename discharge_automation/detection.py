"""
Device Detection

Scans the transposer sides for attached inventories and works out which one
is the charger (source) and which one is the stationary energy cube (sink).

Detection is name based:
- Source: inventory name contains "charger"
- Sink: inventory name contains "cube" or "energy"
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple
from loguru import logger

from .hardware import ConnectionPoint, TransferAdapter


UNKNOWN_INVENTORY_NAME = "Unknown"


@dataclass(frozen=True)
class InventoryDescriptor:
    """Inventory found on a side"""
    point: ConnectionPoint
    slot_count: int
    display_name: str

    def __repr__(self):
        return f"InventoryDescriptor({self.point.label}: {self.display_name}, {self.slot_count} slots)"


@dataclass(frozen=True)
class RoleMatcher:
    """Case-insensitive substring predicate over an inventory name"""
    role: str
    keywords: Tuple[str, ...]

    def __call__(self, descriptor: InventoryDescriptor) -> bool:
        name = descriptor.display_name.lower()
        return any(keyword.lower() in name for keyword in self.keywords)

    def describe(self) -> str:
        return " or ".join(f"'{keyword}'" for keyword in self.keywords)


DEFAULT_SOURCE_MATCHER = RoleMatcher("Charger", ("charger",))
DEFAULT_SINK_MATCHER = RoleMatcher("Energy Cube", ("cube", "energy"))

# Scan result: side -> inventory, in side order
ScanResult = Dict[ConnectionPoint, InventoryDescriptor]


class DeviceScanner:
    """Enumerate the inventories attached to a transposer"""

    def __init__(self, adapter: TransferAdapter):
        self.adapter = adapter

    def scan(self) -> ScanResult:
        """
        Scan every side for an inventory

        Returns:
            Dict of side -> InventoryDescriptor for sides with at least one slot
        """
        logger.info("Detecting inventories...")
        inventories: ScanResult = {}

        for point in ConnectionPoint:
            try:
                size = self.adapter.inventory_size(point)
                if not size or size <= 0:
                    continue
                name = self.adapter.inventory_name(point) or UNKNOWN_INVENTORY_NAME
            except Exception as e:
                logger.warning(f"⚠ Could not query {point.label}: {e}")
                continue

            inventories[point] = InventoryDescriptor(point=point, slot_count=size, display_name=name)
            logger.info(f"  {point.label}: {name}")

        return inventories


class DeviceClassifier:
    """
    Assign source/sink roles to scanned inventories

    The matchers are plain predicates so other naming schemes can be plugged in
    without touching the scan or the loop. When several sides match a role the
    last one in side order wins.
    """

    def __init__(
        self,
        source_matcher: RoleMatcher = DEFAULT_SOURCE_MATCHER,
        sink_matcher: RoleMatcher = DEFAULT_SINK_MATCHER
    ):
        self.source_matcher = source_matcher
        self.sink_matcher = sink_matcher

    def classify(
        self,
        descriptors: Iterable[InventoryDescriptor]
    ) -> Tuple[Optional[ConnectionPoint], Optional[ConnectionPoint]]:
        """
        Classify inventories

        Args:
            descriptors: Scanned inventories

        Returns:
            Tuple of (source_point, sink_point), either may be None
        """
        source = None
        sink = None

        for descriptor in sorted(descriptors, key=lambda d: int(d.point)):
            if self.source_matcher(descriptor):
                source = descriptor.point
            if self.sink_matcher(descriptor):
                sink = descriptor.point

        return source, sink
