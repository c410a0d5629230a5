"""
Configuration Store

Persists which transposer sides the charger and the stationary energy cube
are attached to.

File format (three lines, in order):
    charger_side=<side key>
    cube_side=<side key>
    setup_complete=true
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from loguru import logger

from .hardware import ConnectionPoint


@dataclass
class ChargerConfig:
    """Side assignment for the discharge setup"""
    source: Optional[ConnectionPoint] = None  # charger
    sink: Optional[ConnectionPoint] = None  # stationary energy cube
    setup_complete: bool = False

    def is_ready(self) -> bool:
        """True when the loop can run with this config"""
        return (
            self.setup_complete
            and self.source is not None
            and self.sink is not None
            and self.source != self.sink
        )


class ConfigStore:
    """
    Load and save the side assignment

    Nothing in here raises: a missing or malformed file means "run setup",
    an unwritable file means "setup not saved".
    """

    SOURCE_KEY = "charger_side"
    SINK_KEY = "cube_side"
    COMPLETE_KEY = "setup_complete"

    def __init__(self, config_path: str = "carpetCharger.conf"):
        """
        Initialize config store

        Args:
            config_path: Path to the key=value config file
        """
        self.config_path = Path(config_path)

    @staticmethod
    def _value(line: str, key: str) -> Optional[str]:
        name, sep, value = line.strip().partition("=")
        if not sep or name.strip() != key:
            return None
        return value.strip()

    def load(self) -> Tuple[ChargerConfig, bool]:
        """
        Load configuration from file

        Returns:
            Tuple of (config, found). found is False when setup is needed.
        """
        config = ChargerConfig()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                lines = [f.readline() for _ in range(3)]
        except OSError as e:
            logger.debug(f"No config at {self.config_path}: {e}")
            return config, False

        if not all(line.strip() for line in lines):
            logger.warning(f"⚠ Config {self.config_path} is truncated, setup required")
            return config, False

        source = ConnectionPoint.from_key(self._value(lines[0], self.SOURCE_KEY))
        sink = ConnectionPoint.from_key(self._value(lines[1], self.SINK_KEY))
        complete_value = self._value(lines[2], self.COMPLETE_KEY)

        if source is None or sink is None or complete_value is None:
            logger.warning(f"⚠ Config {self.config_path} is malformed, setup required")
            return config, False

        config.source = source
        config.sink = sink
        config.setup_complete = complete_value == "true"

        if config.setup_complete and source == sink:
            logger.warning(f"⚠ Config {self.config_path} uses {source.label} for both devices, setup required")
            return ChargerConfig(), False

        logger.info("Config loaded")
        return config, True

    def save(self, config: ChargerConfig) -> bool:
        """
        Save configuration to file

        The previous file is only replaced once the new one is fully written.

        Args:
            config: Config to persist

        Returns:
            Success status
        """
        if config.source is None or config.sink is None or config.source == config.sink:
            logger.error("✗ Refusing to save incomplete config")
            return False

        contents = (
            f"{self.SOURCE_KEY}={int(config.source)}\n"
            f"{self.SINK_KEY}={int(config.sink)}\n"
            f"{self.COMPLETE_KEY}={'true' if config.setup_complete else 'false'}\n"
        )

        tmp_path = None
        try:
            directory = self.config_path.parent
            fd, tmp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=str(directory))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(contents)
            os.replace(tmp_path, self.config_path)
        except OSError as e:
            logger.error(f"✗ Could not save config to {self.config_path}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            return False

        logger.info("Config saved")
        return True
