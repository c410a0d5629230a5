"""Tests for the discharge loop driver."""

import pytest

from discharge_automation.config_store import ChargerConfig
from discharge_automation.hardware import ConnectionPoint, ItemDescriptor
from discharge_automation.history import CycleHistoryDB
from discharge_automation.transfer_loop import (
    DischargeLoop,
    EscalationPolicy,
    FailureState,
    TransferOutcome,
)
from tests.doubles.scripted_transposer import RecordingSleep, ScriptedTransposer


def make_loop(adapter, config, matcher, **kwargs):
    sleep = RecordingSleep()
    loop = DischargeLoop(adapter=adapter, config=config, item_matcher=matcher, sleep=sleep, **kwargs)
    return loop, sleep


class TestDischargeCycle:
    """One cycle against scripted hardware."""

    @pytest.mark.asyncio
    async def test_successful_discharge(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 1])
        loop, sleep = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.RETRIEVED
        assert loop.state.has_succeeded_once is True
        assert loop.state.consecutive_failures == 0
        assert adapter.calls == [
            (ConnectionPoint.TOP, ConnectionPoint.BOTTOM, 1),
            (ConnectionPoint.BOTTOM, ConnectionPoint.TOP, 1),
        ]
        # Settle pause between hops, then the normal wait
        assert sleep.calls == [1, 5]

    @pytest.mark.asyncio
    async def test_first_transfer_fails(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[0])
        loop, sleep = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.TRANSFER_FAILED
        assert loop.state.consecutive_failures == 1
        assert len(adapter.calls) == 1
        assert sleep.calls == [5]

    @pytest.mark.asyncio
    async def test_empty_slot_resets_failures(self, charger_config, cube_matcher):
        adapter = ScriptedTransposer(item=None)
        loop, _ = make_loop(adapter, charger_config, cube_matcher)
        loop.state = FailureState(consecutive_failures=4)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.EMPTY_OR_ELIGIBLE
        assert loop.state.consecutive_failures == 0
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_foreign_item_is_left_alone(self, charger_config, cube_matcher):
        adapter = ScriptedTransposer(item=ItemDescriptor("minecraft:stone", "Stone"))
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.FOREIGN_ITEM
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_retrieve_failure(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 0])
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.outcomes == (TransferOutcome.MOVED, TransferOutcome.RETRIEVE_FAILED)
        assert loop.state.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_drained_item_after_success_is_benign(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 1, 0])
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        await loop.run_cycle()
        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.EMPTY_OR_ELIGIBLE
        assert loop.state.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_settle_pause_can_be_disabled(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 1])
        loop, sleep = make_loop(adapter, charger_config, cube_matcher, policy=EscalationPolicy(settle_interval=0))

        await loop.run_cycle()

        assert sleep.calls == [5]


class TestAdapterErrors:
    """Hardware exceptions never escape a cycle."""

    @pytest.mark.asyncio
    async def test_move_exception_is_transfer_failure(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[RuntimeError("transposer gone")])
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.TRANSFER_FAILED
        assert "transposer gone" in action.message

    @pytest.mark.asyncio
    async def test_move_exception_after_success_escalates(self, charger_config, cube_matcher, energy_cube, log_messages):
        adapter = ScriptedTransposer(
            item=energy_cube,
            transfers=[1, 1] + [RuntimeError("transposer gone")] * 5,
        )
        loop, sleep = make_loop(adapter, charger_config, cube_matcher)

        first = await loop.run_cycle()
        assert first.final_outcome == TransferOutcome.RETRIEVED

        actions = [await loop.run_cycle() for _ in range(5)]

        assert [action.final_outcome for action in actions] == [TransferOutcome.TRANSFER_FAILED] * 5
        assert [action.remind_setup for action in actions] == [False, False, True, False, False]
        assert actions[-1].cooldown is True
        assert sleep.calls[-1] == 30
        assert log_messages.count("Too many failures!") == 1
        assert not any("nothing to discharge" in message for message in log_messages)

    @pytest.mark.asyncio
    async def test_return_exception_is_retrieve_failure(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, OSError("jammed")])
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.RETRIEVE_FAILED

    @pytest.mark.asyncio
    async def test_read_exception_is_transfer_failure(self, charger_config, cube_matcher):
        adapter = ScriptedTransposer(read_error=ValueError("invalid side"))
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        action = await loop.run_cycle()

        assert action.final_outcome == TransferOutcome.TRANSFER_FAILED
        assert loop.state.consecutive_failures == 1


class TestEscalationInLoop:
    """Reminder and cooldown as seen from the running loop."""

    @pytest.mark.asyncio
    async def test_five_failures_trigger_cooldown(self, charger_config, cube_matcher, energy_cube, log_messages):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[0] * 6)
        loop, sleep = make_loop(adapter, charger_config, cube_matcher)

        for _ in range(5):
            await loop.run_cycle()

        assert sleep.calls == [5, 5, 5, 5, 30]
        assert loop.state.consecutive_failures == 0
        assert log_messages.count("Too many failures!") == 1
        assert sum("REMINDER" in message for message in log_messages) == 1

        await loop.run_cycle()
        assert loop.state.consecutive_failures == 1
        assert sleep.calls[-1] == 5


class TestRunForever:
    """Loop lifecycle."""

    @pytest.mark.asyncio
    async def test_max_cycles(self, charger_config, cube_matcher, energy_cube, log_messages):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 1, 1, 1])
        loop, _ = make_loop(adapter, charger_config, cube_matcher)

        await loop.run_forever(max_cycles=2)

        assert loop.cycle_count == 2
        assert "Charger: top" in log_messages
        assert "Stationary Cube: bottom" in log_messages

    @pytest.mark.asyncio
    async def test_stop_ends_after_current_cycle(self, charger_config, cube_matcher):
        adapter = ScriptedTransposer(item=None)
        loop = DischargeLoop(adapter=adapter, config=charger_config, item_matcher=cube_matcher)

        async def stop_after_first(seconds):
            loop.stop()

        loop.sleep = stop_after_first
        await loop.run_forever()

        assert loop.cycle_count == 1

    def test_requires_completed_setup(self, cube_matcher):
        adapter = ScriptedTransposer()
        same_side = ChargerConfig(ConnectionPoint.TOP, ConnectionPoint.TOP, setup_complete=True)

        with pytest.raises(ValueError):
            DischargeLoop(adapter=adapter, config=ChargerConfig(), item_matcher=cube_matcher)
        with pytest.raises(ValueError):
            DischargeLoop(adapter=adapter, config=same_side, item_matcher=cube_matcher)

    @pytest.mark.asyncio
    async def test_cycles_are_recorded(self, charger_config, cube_matcher, energy_cube):
        adapter = ScriptedTransposer(item=energy_cube, transfers=[1, 1, 0])
        history = CycleHistoryDB(":memory:")
        loop, _ = make_loop(adapter, charger_config, cube_matcher, history=history)

        await loop.run_forever(max_cycles=2)

        recent = history.get_recent_cycles()
        assert [row['outcome'] for row in recent] == ['empty_or_eligible', 'retrieved']
        assert recent[1]['moved_units'] == 1
        assert recent[1]['item_label'] == "Basic Energy Cube"
        history.close()
