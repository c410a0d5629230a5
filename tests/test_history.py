"""Tests for the SQLite cycle history."""

from datetime import datetime, timedelta, timezone

import pytest

from discharge_automation.history import CycleHistoryDB, CycleRecord


START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def record(number, outcome, cooldown=False, moved=0, returned=0):
    return CycleRecord(
        cycle_number=number,
        outcome=outcome,
        item_label="Basic Energy Cube",
        moved_units=moved,
        returned_units=returned,
        consecutive_failures=0,
        cooldown=cooldown,
        recorded_at=START + timedelta(seconds=5 * number),
    )


@pytest.fixture
def db():
    history = CycleHistoryDB(":memory:")
    yield history
    history.close()


def test_statistics(db):
    db.record_cycle(record(1, "retrieved", moved=1, returned=1))
    db.record_cycle(record(2, "transfer_failed"))
    db.record_cycle(record(3, "retrieve_failed", moved=1))
    db.record_cycle(record(4, "empty_or_eligible", cooldown=True))

    stats = db.get_statistics()

    assert stats['total_cycles'] == 4
    assert stats['discharges'] == 1
    assert stats['failures'] == 2
    assert stats['cooldowns'] == 1
    assert stats['failure_rate'] == 50.0
    assert stats['by_outcome']['transfer_failed'] == 1
    assert stats['first_cycle_at'] == record(1, "retrieved").recorded_at.isoformat()


def test_empty_statistics(db):
    stats = db.get_statistics()

    assert stats['total_cycles'] == 0
    assert stats['failure_rate'] == 0.0


def test_recent_cycles_newest_first(db):
    for number in range(1, 6):
        db.record_cycle(record(number, "retrieved"))

    recent = db.get_recent_cycles(limit=2)

    assert [row['cycle_number'] for row in recent] == [5, 4]


def test_unknown_outcome_is_rejected(db):
    assert db.record_cycle(record(1, "exploded")) is False
    assert db.get_statistics()['total_cycles'] == 0


def test_persists_to_file(tmp_path):
    path = tmp_path / "history.db"
    first = CycleHistoryDB(str(path))
    first.record_cycle(record(1, "retrieved"))
    first.close()

    second = CycleHistoryDB(str(path))
    assert second.get_statistics()['total_cycles'] == 1
    second.close()


def test_record_to_dict():
    data = record(1, "retrieved").to_dict()

    assert data['recorded_at'] == "2024-01-01T12:00:05+00:00"
    assert data['outcome'] == "retrieved"


def test_row_matches_record(db):
    db.record_cycle(record(7, "retrieve_failed", cooldown=True, moved=1))

    row = db.get_recent_cycles(limit=1)[0]

    assert row['cycle_number'] == 7
    assert row['item_label'] == "Basic Energy Cube"
    assert row['moved_units'] == 1
    assert row['returned_units'] == 0
    assert row['cooldown'] == 1
    assert row['recorded_at'] == "2024-01-01T12:00:35+00:00"
