"""
Command-line interface

Commands:
- run (default): load saved config or run setup, then discharge forever
- setup: run first-time setup and save the result
- scan: show detected inventories and role assignment
- history: show cycle statistics from the history database

The transposer comes either from the built-in simulator (--simulate) or from
a host-provided factory (--adapter module:function).
"""

import argparse
import asyncio
import importlib
import json
import os
import sys
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv
from loguru import logger

from .config_store import ConfigStore
from .detection import DeviceClassifier, DeviceScanner
from .hardware import TransferAdapter
from .history import CycleHistoryDB
from .settings import AutomationSettings, load_settings
from .setup_wizard import SetupAborted, SetupWizard
from .simulator import build_demo_transposer
from .transfer_loop import DischargeLoop


def configure_logging(verbose: bool = False):
    """Replace loguru's default sink with the console format used here"""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format="{level} | {name}:{function} - {message}")
    else:
        logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {message}")


def _parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="discharge-automation",
        description="Energy Cube discharge automation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("command", nargs="?", default="run", choices=["run", "setup", "scan", "history"],
                        help="Action to perform")
    parser.add_argument("--settings", default=None,
                        help="Settings YAML (default: $DISCHARGE_SETTINGS or discharge_settings.yaml)")
    parser.add_argument("--adapter", default=None,
                        help="Transposer factory as module:function")
    parser.add_argument("--simulate", action="store_true", help="Use the simulated transposer")
    parser.add_argument("--max-cycles", type=int, default=None, help="Stop after N cycles")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def load_adapter(location: str) -> TransferAdapter:
    """
    Build a transposer from a 'module:function' factory

    Args:
        location: Factory location, e.g. "host_bridge:create_transposer"

    Returns:
        Adapter returned by the factory

    Raises:
        ValueError: Malformed factory location
    """
    module_name, sep, attr = location.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Adapter must look like module:function, got '{location}'")

    factory = getattr(importlib.import_module(module_name), attr)
    return factory()


def _build_adapter(args: argparse.Namespace) -> Optional[TransferAdapter]:
    if args.simulate:
        logger.info("Using simulated transposer")
        return build_demo_transposer()
    if args.adapter:
        try:
            return load_adapter(args.adapter)
        except Exception as e:
            logger.error(f"✗ Could not create transposer from '{args.adapter}': {e}")
    return None


def _build_wizard(adapter: TransferAdapter, settings: AutomationSettings, store: ConfigStore) -> SetupWizard:
    return SetupWizard(
        scanner=DeviceScanner(adapter),
        classifier=DeviceClassifier(settings.source_matcher(), settings.sink_matcher()),
        store=store,
    )


def _command_scan(adapter: TransferAdapter, settings: AutomationSettings) -> int:
    inventories = DeviceScanner(adapter).scan()
    classifier = DeviceClassifier(settings.source_matcher(), settings.sink_matcher())
    source, sink = classifier.classify(inventories.values())

    if not inventories:
        print("No inventories detected")
    print(f"Charger: {source.label if source is not None else 'not found'}")
    print(f"Stationary Cube: {sink.label if sink is not None else 'not found'}")
    return 0


def _command_history(settings: AutomationSettings) -> int:
    if not settings.history_db or not Path(settings.history_db).exists():
        print("Error: no history database (set history_db in the settings file)")
        return 1

    db = CycleHistoryDB(settings.history_db)
    try:
        print(json.dumps(db.get_statistics(), indent=2))
    finally:
        db.close()
    return 0


def _command_run(adapter: TransferAdapter, settings: AutomationSettings, store: ConfigStore,
                 max_cycles: Optional[int]) -> int:
    print("ENERGY CUBE DISCHARGE SYSTEM")

    config, found = store.load()
    if found and config.is_ready():
        print("Using saved config")
    else:
        try:
            config = _build_wizard(adapter, settings, store).run()
        except SetupAborted as e:
            logger.error(f"✗ {e}")
            return 1

    history = CycleHistoryDB(settings.history_db) if settings.history_db else None
    loop = DischargeLoop(
        adapter=adapter,
        config=config,
        item_matcher=settings.item_matcher(),
        policy=settings.policy(),
        reference_slot=settings.reference_slot,
        history=history,
    )

    try:
        asyncio.run(loop.run_forever(max_cycles=max_cycles))
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping automation")
    finally:
        if history:
            history.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = _parse_arguments(argv)
    configure_logging(args.verbose)

    settings = load_settings(args.settings or os.environ.get("DISCHARGE_SETTINGS"))
    store = ConfigStore(settings.config_file)

    if args.command == "history":
        return _command_history(settings)

    adapter = _build_adapter(args)
    if adapter is None:
        print("Error: no transposer available, pass --adapter module:function or --simulate")
        return 2

    if args.command == "scan":
        return _command_scan(adapter, settings)

    if args.command == "setup":
        try:
            _build_wizard(adapter, settings, store).run()
        except SetupAborted as e:
            logger.error(f"✗ {e}")
            return 1
        return 0

    return _command_run(adapter, settings, store, args.max_cycles)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
