"""Shared fixtures."""

import pytest
from loguru import logger

from discharge_automation.config_store import ChargerConfig
from discharge_automation.hardware import ConnectionPoint, ItemDescriptor
from discharge_automation.items import TrackedItemMatcher
from discharge_automation.simulator import SimulatedTransposer


@pytest.fixture
def log_messages():
    """Capture loguru messages as plain strings."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def charger_config():
    return ChargerConfig(source=ConnectionPoint.TOP, sink=ConnectionPoint.BOTTOM, setup_complete=True)


@pytest.fixture
def cube_matcher():
    return TrackedItemMatcher("mod:energycube", ("energy", "cube"))


@pytest.fixture
def energy_cube():
    return ItemDescriptor("mod:energycube", "Basic Energy Cube")


@pytest.fixture
def transposer():
    """Charger on top, discharging cube on the bottom, nothing loaded."""
    sim = SimulatedTransposer()
    sim.attach(ConnectionPoint.TOP, "opencomputers:charger")
    sim.attach(ConnectionPoint.BOTTOM, "mekanism:energycube", slot_count=2, discharges=True)
    return sim
