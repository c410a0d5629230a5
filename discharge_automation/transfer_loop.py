"""
Discharge Transfer Loop

Continuous discharge cycle:
1. Read the reference slot of the charger
2. Move the tracked item into the stationary energy cube
3. Wait for the cube to drain it
4. Move the item back to the charger
5. Classify the outcome and apply the escalation policy
6. Wait before the next cycle

Each cycle is split in two halves: DischargeLoop talks to the hardware and
builds a CycleObservation, and `step` turns (FailureState, observation) into
the next FailureState plus a CycleAction. `step` is pure, so the escalation
policy is testable without a transposer.

A zero-unit move is ambiguous: the item may simply have nothing left to
discharge, or the cube side may be misconfigured. Once a full cycle has
worked, zero-unit moves are treated as the former. An adapter exception is
always a failure.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple
from loguru import logger

from .config_store import ChargerConfig
from .hardware import ItemDescriptor, TransferAdapter
from .history import CycleHistoryDB, CycleRecord
from .items import TrackedItemMatcher
from .setup_wizard import DISCHARGE_REMINDER


class TransferOutcome(str, Enum):
    """What happened during a cycle"""
    MOVED = "moved"
    RETRIEVED = "retrieved"
    EMPTY_OR_ELIGIBLE = "empty_or_eligible"
    TRANSFER_FAILED = "transfer_failed"
    RETRIEVE_FAILED = "retrieve_failed"
    FOREIGN_ITEM = "foreign_item"


@dataclass(frozen=True)
class EscalationPolicy:
    """Thresholds and waits (seconds)"""
    failure_threshold: int = 5  # cooldown after this many consecutive failures
    reminder_threshold: int = 3  # setup reminder after this many transfer failures
    poll_interval: float = 5
    cooldown_interval: float = 30
    settle_interval: float = 1  # pause between the two hops, 0 disables


@dataclass(frozen=True)
class FailureState:
    """Failure bookkeeping, lives for one process run"""
    consecutive_failures: int = 0
    has_succeeded_once: bool = False
    reminder_failures: int = 0


@dataclass(frozen=True)
class CycleObservation:
    """What the hardware reported during one cycle"""
    item: Optional[ItemDescriptor] = None
    matched: bool = False
    moved: Optional[int] = None  # None: move not attempted
    returned: Optional[int] = None  # None: return not attempted
    error: Optional[str] = None  # adapter exception text, if any


@dataclass(frozen=True)
class CycleAction:
    """What the loop should report and how long to wait"""
    outcomes: Tuple[TransferOutcome, ...]
    message: str
    wait_seconds: float
    remind_setup: bool = False
    cooldown: bool = False

    @property
    def final_outcome(self) -> TransferOutcome:
        return self.outcomes[-1]

    @property
    def is_failure(self) -> bool:
        return self.final_outcome in (TransferOutcome.TRANSFER_FAILED, TransferOutcome.RETRIEVE_FAILED)


def step(
    state: FailureState,
    observation: CycleObservation,
    policy: EscalationPolicy = EscalationPolicy()
) -> Tuple[FailureState, CycleAction]:
    """
    Classify one cycle and advance the failure state

    Args:
        state: Failure state before the cycle
        observation: What the hardware reported
        policy: Thresholds and waits

    Returns:
        Tuple of (new_state, action)
    """
    failures = state.consecutive_failures
    reminder = state.reminder_failures
    succeeded = state.has_succeeded_once
    item = observation.item

    if item is None and observation.error:
        # Charger slot could not be read at all
        outcomes = (TransferOutcome.TRANSFER_FAILED,)
        message = f"Could not read charger: {observation.error}"
        failures += 1
        reminder += 1

    elif item is None:
        outcomes = (TransferOutcome.EMPTY_OR_ELIGIBLE,)
        message = "No tracked item in charger"
        failures = reminder = 0

    elif not observation.matched:
        outcomes = (TransferOutcome.FOREIGN_ITEM,)
        message = f"Non-tracked item: {item.description}"
        failures = reminder = 0

    elif not observation.moved:
        if succeeded and not observation.error:
            outcomes = (TransferOutcome.EMPTY_OR_ELIGIBLE,)
            message = f"{item.description} has nothing to discharge, skipping..."
            failures = reminder = 0
        else:
            outcomes = (TransferOutcome.TRANSFER_FAILED,)
            message = "Transfer failed! Likely setup issue - cube side may not be set to 'Discharge'"
            if observation.error:
                message += f" ({observation.error})"
            failures += 1
            reminder += 1

    elif not observation.returned:
        outcomes = (TransferOutcome.MOVED, TransferOutcome.RETRIEVE_FAILED)
        message = f"Failed to retrieve {item.description}!"
        if observation.error:
            message += f" ({observation.error})"
        failures += 1

    else:
        outcomes = (TransferOutcome.MOVED, TransferOutcome.RETRIEVED)
        message = "Discharge complete!"
        succeeded = True
        failures = reminder = 0

    remind_setup = reminder >= policy.reminder_threshold
    if remind_setup:
        reminder = 0

    cooldown = failures >= policy.failure_threshold
    if cooldown:
        failures = 0

    new_state = replace(
        state,
        consecutive_failures=failures,
        has_succeeded_once=succeeded,
        reminder_failures=reminder,
    )
    action = CycleAction(
        outcomes=outcomes,
        message=message,
        wait_seconds=policy.cooldown_interval if cooldown else policy.poll_interval,
        remind_setup=remind_setup,
        cooldown=cooldown,
    )
    return new_state, action


class DischargeLoop:
    """
    Drive discharge cycles against a transposer

    Never raises out of a cycle: adapter errors become zero-unit results and
    flow through the same escalation policy as any other failure.
    """

    def __init__(
        self,
        adapter: TransferAdapter,
        config: ChargerConfig,
        item_matcher: TrackedItemMatcher,
        policy: EscalationPolicy = EscalationPolicy(),
        reference_slot: int = 1,
        history: Optional[CycleHistoryDB] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize discharge loop

        Args:
            adapter: Transposer access
            config: Completed side assignment
            item_matcher: Tracked item classifier
            policy: Escalation thresholds and waits
            reference_slot: Charger slot to inspect (1-based)
            history: Optional cycle history database
            sleep: Awaitable sleep, replaced in tests
        """
        if not config.is_ready():
            raise ValueError("Discharge loop needs a completed setup with two distinct sides")

        self.adapter = adapter
        self.config = config
        self.item_matcher = item_matcher
        self.policy = policy
        self.reference_slot = reference_slot
        self.history = history
        self.sleep = sleep

        self.state = FailureState()
        self.cycle_count = 0
        self._stop_requested = False

    def _transfer(self, source, sink) -> Tuple[int, Optional[str]]:
        """Move one unit, returns (units_moved, error)"""
        try:
            return int(self.adapter.transfer_units(source, sink, 1) or 0), None
        except Exception as e:
            logger.error(f"✗ Transfer {source.label} -> {sink.label} raised: {e}")
            return 0, str(e)

    async def observe(self) -> CycleObservation:
        """Inspect the charger and run the two transfer hops if warranted"""
        source, sink = self.config.source, self.config.sink

        try:
            item = self.adapter.item_in_slot(source, self.reference_slot)
        except Exception as e:
            logger.error(f"✗ Reading {source.label} slot {self.reference_slot} raised: {e}")
            return CycleObservation(error=str(e))

        if item is None or not self.item_matcher.matches(item):
            return CycleObservation(item=item, matched=False)

        logger.info(f"Found: {item.description}")
        logger.info("Moving to stationary cube...")
        moved, error = self._transfer(source, sink)
        if moved <= 0:
            return CycleObservation(item=item, matched=True, moved=0, error=error)

        logger.info("Discharging...")
        if self.policy.settle_interval > 0:
            await self.sleep(self.policy.settle_interval)

        returned, error = self._transfer(sink, source)
        return CycleObservation(item=item, matched=True, moved=moved, returned=returned, error=error)

    def _report(self, action: CycleAction):
        if action.is_failure:
            logger.warning(f"✗ {action.message}")
        elif action.final_outcome == TransferOutcome.RETRIEVED:
            logger.info(f"✓ {action.message}")
        else:
            logger.info(action.message)

        if action.remind_setup:
            logger.warning("")
            for line in DISCHARGE_REMINDER:
                logger.warning(line)
            logger.warning("")

        if action.cooldown:
            logger.error("")
            logger.error("Too many failures!")
            logger.error("Check setup and hardware.")
            logger.error(f"Waiting {action.wait_seconds:g} seconds...")
            logger.error("")
        else:
            logger.info(f"Waiting {action.wait_seconds:g} seconds...")

    def _record(self, observation: CycleObservation, action: CycleAction):
        if self.history is None:
            return

        record = CycleRecord(
            cycle_number=self.cycle_count,
            outcome=action.final_outcome.value,
            item_label=observation.item.description if observation.item else None,
            moved_units=observation.moved or 0,
            returned_units=observation.returned or 0,
            consecutive_failures=self.state.consecutive_failures,
            cooldown=action.cooldown,
            recorded_at=datetime.now(timezone.utc),
        )
        self.history.record_cycle(record)

    async def run_cycle(self) -> CycleAction:
        """
        Run one full cycle, including the end-of-cycle wait

        Returns:
            CycleAction describing the cycle
        """
        self.cycle_count += 1
        observation = await self.observe()
        self.state, action = step(self.state, observation, self.policy)

        self._report(action)
        self._record(observation, action)

        await self.sleep(action.wait_seconds)
        return action

    def stop(self):
        """Finish the current cycle, then leave run_forever"""
        self._stop_requested = True

    async def run_forever(self, max_cycles: Optional[int] = None):
        """
        Run cycles until stopped or cancelled

        Args:
            max_cycles: Optional cycle limit (None = run until cancelled)
        """
        logger.info("=== ENERGY CUBE AUTOMATION ===")
        logger.info(f"Charger: {self.config.source.label}")
        logger.info(f"Stationary Cube: {self.config.sink.label}")
        logger.info("Press Ctrl+C to stop")

        self._stop_requested = False
        while not self._stop_requested:
            if max_cycles is not None and self.cycle_count >= max_cycles:
                break
            await self.run_cycle()

        logger.info(f"Automation stopped after {self.cycle_count} cycles")
