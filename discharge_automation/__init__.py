"""
Energy Cube Discharge Automation

Moves energy cubes from a charger into a stationary Mekanism Energy Cube set
to 'Discharge', then back again, forever.

Components:
- hardware: Transposer sides, item descriptors, adapter protocol
- config_store: Side assignment persisted as key=value lines
- detection: Inventory scan and charger/cube role classification
- setup_wizard: Interactive first-time setup
- items: Tracked item classifier (energy cube / battery upgrade)
- transfer_loop: Discharge cycle with failure escalation
- history: Optional SQLite cycle log
- settings: YAML settings with defaults
- simulator: In-memory transposer for dry runs

Escalation:
1. Reminder - setup reminder after 3 consecutive transfer failures
2. Cooldown - 30s pause after 5 consecutive failures, then start over
"""

from .hardware import (
    ConnectionPoint,
    ItemDescriptor,
    TransferAdapter,
)
from .config_store import (
    ChargerConfig,
    ConfigStore,
)
from .detection import (
    DeviceClassifier,
    DeviceScanner,
    InventoryDescriptor,
    RoleMatcher,
)
from .items import (
    TrackedItemMatcher,
    build_item_matcher,
)
from .setup_wizard import (
    SetupAborted,
    SetupWizard,
)
from .transfer_loop import (
    CycleAction,
    CycleObservation,
    DischargeLoop,
    EscalationPolicy,
    FailureState,
    TransferOutcome,
    step,
)
from .history import (
    CycleHistoryDB,
    CycleRecord,
)
from .settings import (
    AutomationSettings,
    load_settings,
)
from .simulator import (
    SimulatedTransposer,
    build_demo_transposer,
)

__all__ = [
    # Hardware
    'ConnectionPoint',
    'ItemDescriptor',
    'TransferAdapter',

    # Configuration
    'ChargerConfig',
    'ConfigStore',
    'AutomationSettings',
    'load_settings',

    # Detection and setup
    'DeviceScanner',
    'DeviceClassifier',
    'InventoryDescriptor',
    'RoleMatcher',
    'SetupWizard',
    'SetupAborted',

    # Discharge loop
    'TrackedItemMatcher',
    'build_item_matcher',
    'DischargeLoop',
    'EscalationPolicy',
    'FailureState',
    'CycleObservation',
    'CycleAction',
    'TransferOutcome',
    'step',

    # History tracking
    'CycleHistoryDB',
    'CycleRecord',

    # Simulation
    'SimulatedTransposer',
    'build_demo_transposer',
]

__version__ = '1.0.0'
__description__ = 'Energy Cube discharge automation for OpenComputers transposers'
