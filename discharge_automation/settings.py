"""
Automation Settings

Loads discharge_settings.yaml. Every key is optional; missing or invalid
values fall back to the defaults below so a bad settings file never stops
the automation.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional
from loguru import logger
import yaml

from .detection import RoleMatcher
from .items import DEFAULT_TRACKED_ITEM, TRACKED_ITEM_PRESETS, TrackedItemMatcher, build_item_matcher
from .transfer_loop import EscalationPolicy


DEFAULT_SETTINGS_PATH = "discharge_settings.yaml"


@dataclass
class AutomationSettings:
    """Settings for setup and the discharge loop"""
    config_file: str = "carpetCharger.conf"
    tracked_item: str = DEFAULT_TRACKED_ITEM
    tracked_item_id: Optional[str] = None
    tracked_item_keywords: Optional[List[str]] = None
    source_keywords: List[str] = field(default_factory=lambda: ["charger"])
    sink_keywords: List[str] = field(default_factory=lambda: ["cube", "energy"])
    reference_slot: int = 1
    poll_interval_seconds: float = 5
    cooldown_seconds: float = 30
    settle_seconds: float = 1
    failure_threshold: int = 5
    reminder_threshold: int = 3
    history_db: Optional[str] = None

    def policy(self) -> EscalationPolicy:
        return EscalationPolicy(
            failure_threshold=self.failure_threshold,
            reminder_threshold=self.reminder_threshold,
            poll_interval=self.poll_interval_seconds,
            cooldown_interval=self.cooldown_seconds,
            settle_interval=self.settle_seconds,
        )

    def item_matcher(self) -> TrackedItemMatcher:
        return build_item_matcher(
            self.tracked_item,
            internal_id=self.tracked_item_id,
            label_keywords=self.tracked_item_keywords,
        )

    def source_matcher(self) -> RoleMatcher:
        return RoleMatcher("Charger", tuple(self.source_keywords))

    def sink_matcher(self) -> RoleMatcher:
        return RoleMatcher("Energy Cube", tuple(self.sink_keywords))


def _validate(settings: AutomationSettings) -> List[str]:
    """Return a list of problems, empty when the settings are usable"""
    problems = []

    if settings.tracked_item not in TRACKED_ITEM_PRESETS:
        problems.append(f"tracked_item must be one of {list(TRACKED_ITEM_PRESETS)}")
    if not isinstance(settings.source_keywords, list) or not isinstance(settings.sink_keywords, list):
        problems.append("source_keywords and sink_keywords must be lists")
    elif not settings.source_keywords or not settings.sink_keywords:
        problems.append("source_keywords and sink_keywords must not be empty")
    if settings.tracked_item_keywords is not None and not isinstance(settings.tracked_item_keywords, list):
        problems.append("tracked_item_keywords must be a list")
    if settings.reference_slot < 1:
        problems.append("reference_slot starts at 1")
    if settings.failure_threshold < 1 or settings.reminder_threshold < 1:
        problems.append("thresholds must be at least 1")
    if min(settings.poll_interval_seconds, settings.cooldown_seconds, settings.settle_seconds) < 0:
        problems.append("intervals must not be negative")

    return problems


def load_settings(settings_path: Optional[str] = None) -> AutomationSettings:
    """
    Load settings from YAML

    Args:
        settings_path: Path to settings file (default: discharge_settings.yaml)

    Returns:
        AutomationSettings, defaults where the file is silent or wrong
    """
    defaults = AutomationSettings()
    path = Path(settings_path or DEFAULT_SETTINGS_PATH)

    if not path.exists():
        logger.debug(f"No settings file at {path}, using defaults")
        return defaults

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load settings from {path}: {e}, using defaults")
        return defaults

    if not isinstance(raw, dict):
        logger.warning(f"Settings file {path} is not a mapping, using defaults")
        return defaults

    known = {f.name for f in fields(AutomationSettings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown settings: {unknown}")

    values: Dict = {key: value for key, value in raw.items() if key in known and value is not None}

    try:
        settings = AutomationSettings(**values)
        problems = _validate(settings)
    except TypeError as e:
        problems = [str(e)]

    if problems:
        logger.warning(f"Invalid settings in {path}: {'; '.join(problems)}, using defaults")
        return defaults

    logger.info(f"Loaded settings from {path}")
    return settings
