"""
Tracked Item Classifier

Decides whether the stack sitting in the charger is the item this deployment
discharges.

Check order:
1. Internal item id (most reliable)
2. Display label contains every required keyword (backup)
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .hardware import ItemDescriptor


@dataclass(frozen=True)
class TrackedItemMatcher:
    """Identify the tracked item by id or by label keywords"""
    internal_id: str
    label_keywords: Tuple[str, ...]

    def matches(self, item: Optional[ItemDescriptor]) -> bool:
        if item is None:
            return False

        if item.internal_id == self.internal_id:
            return True

        if item.display_label and self.label_keywords:
            label = item.display_label.lower()
            return all(keyword.lower() in label for keyword in self.label_keywords)

        return False

    __call__ = matches


# Deployment variants
TRACKED_ITEM_PRESETS: Dict[str, TrackedItemMatcher] = {
    'energy_cube': TrackedItemMatcher("mekanism:energycube", ("energy", "cube")),
    'battery_upgrade': TrackedItemMatcher("opencomputers:upgrade", ("battery", "upgrade")),
}

DEFAULT_TRACKED_ITEM = 'energy_cube'


def build_item_matcher(
    preset: str = DEFAULT_TRACKED_ITEM,
    internal_id: Optional[str] = None,
    label_keywords: Optional[Sequence[str]] = None
) -> TrackedItemMatcher:
    """
    Build a matcher from a preset with optional overrides

    Args:
        preset: Variant name (see TRACKED_ITEM_PRESETS)
        internal_id: Replaces the preset's internal id
        label_keywords: Replaces the preset's label keywords

    Returns:
        TrackedItemMatcher

    Raises:
        ValueError: Unknown preset
    """
    if preset not in TRACKED_ITEM_PRESETS:
        raise ValueError(
            f"Unknown tracked item '{preset}', choose one of: {', '.join(TRACKED_ITEM_PRESETS)}"
        )

    base = TRACKED_ITEM_PRESETS[preset]
    return TrackedItemMatcher(
        internal_id=internal_id or base.internal_id,
        label_keywords=tuple(label_keywords) if label_keywords else base.label_keywords,
    )
