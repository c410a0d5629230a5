"""
Setup Wizard

First-time setup: the operator places the charger and the stationary energy
cube next to the transposer, presses ENTER, and the wizard detects both. It
keeps asking until both are found; there is no attempt limit.

States:
- AWAITING_CONFIRMATION: instructions shown, waiting for ENTER
- RESOLVED: both devices detected and config committed
"""

from enum import Enum
from typing import Callable, Optional
from loguru import logger

from .config_store import ChargerConfig, ConfigStore
from .detection import DeviceClassifier, DeviceScanner, ScanResult


SETUP_INSTRUCTIONS = (
    "SETUP REQUIRED:",
    "1. Place the stationary Energy Cube next to the Transposer",
    "2. Open the Energy Cube GUI",
    "3. Go to 'Side Config' tab",
    "4. Click 'Items' tab",
    "5. Set the side touching the Transposer to",
    "   'Discharge' (Dark Red)",
    "6. Place Charger next to the Transposer",
)

DISCHARGE_REMINDER = (
    "REMINDER: Energy Cube side touching Transposer",
    "must be set to 'Discharge' (Dark Red) in Side Config!",
)


class SetupState(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESOLVED = "resolved"


class SetupAborted(Exception):
    """Operator closed input before setup was resolved"""


def _wait_for_enter():
    input("Press ENTER when setup is complete...")


class SetupWizard:
    """Interactive detection of the charger and the stationary cube"""

    def __init__(
        self,
        scanner: DeviceScanner,
        classifier: DeviceClassifier,
        store: ConfigStore,
        confirm: Callable[[], None] = _wait_for_enter,
        echo: Callable[[str], None] = print
    ):
        """
        Initialize setup wizard

        Args:
            scanner: Inventory scanner
            classifier: Role classifier
            store: Where the result is committed
            confirm: Blocks until the operator confirms (no timeout)
            echo: Operator-facing output
        """
        self.scanner = scanner
        self.classifier = classifier
        self.store = store
        self.confirm = confirm
        self.echo = echo
        self.state = SetupState.AWAITING_CONFIRMATION
        self.attempts = 0

    def show_instructions(self):
        for line in SETUP_INSTRUCTIONS:
            self.echo(line)
        self.echo("")

    def _show_incomplete(self, inventories: ScanResult, source, sink):
        self.echo("SETUP INCOMPLETE!")
        self.echo("")
        self.echo("Currently detected:")
        if inventories:
            for point, info in inventories.items():
                self.echo(f"  {point.label}: {info.display_name}")
        else:
            self.echo("  No inventories detected")
        self.echo("")

        if source is not None and source == sink:
            self.echo(f"AMBIGUOUS: {source.label} matches both the Charger and the Energy Cube")
        else:
            if source is None:
                self.echo(
                    f"MISSING: {self.classifier.source_matcher.role} "
                    f"(no inventory with {self.classifier.source_matcher.describe()} in name)"
                )
            if sink is None:
                self.echo(
                    f"MISSING: {self.classifier.sink_matcher.role} "
                    f"(no inventory with {self.classifier.sink_matcher.describe()} in name)"
                )
                self.echo("  Make sure the cube side touching the Transposer is set to 'Discharge'!")
        self.echo("")

    def attempt(self) -> Optional[ChargerConfig]:
        """
        One detection pass

        Returns:
            Completed ChargerConfig, or None if a role is still missing
        """
        self.attempts += 1
        inventories = self.scanner.scan()
        source, sink = self.classifier.classify(inventories.values())

        if source is None or sink is None or source == sink:
            logger.debug(f"Setup attempt {self.attempts}: source={source}, sink={sink}")
            self._show_incomplete(inventories, source, sink)
            return None

        return ChargerConfig(source=source, sink=sink, setup_complete=True)

    def run(self) -> ChargerConfig:
        """
        Run setup until both devices are detected

        Returns:
            Completed ChargerConfig (also saved to the store when possible)

        Raises:
            SetupAborted: Input closed or interrupted while waiting
        """
        self.echo("=== FIRST TIME SETUP ===")
        self.echo("")
        self.show_instructions()

        while self.state == SetupState.AWAITING_CONFIRMATION:
            try:
                self.confirm()
            except (EOFError, KeyboardInterrupt) as e:
                raise SetupAborted("Setup aborted before both devices were detected") from e
            self.echo("")

            config = self.attempt()
            if config is None:
                self.show_instructions()
                continue

            self.state = SetupState.RESOLVED
            self.echo("SUCCESS! Detected:")
            self.echo(f"  Charger: {config.source.label}")
            self.echo(f"  Stationary Cube: {config.sink.label}")
            self.echo("")

            if self.store.save(config):
                self.echo("Setup complete!")
            else:
                logger.warning("⚠ Setup not saved, it will be asked again next start")

            return config
