"""
Cycle History Database

Optional SQLite log of every discharge cycle.

Tables:
- cycles: One row per cycle (outcome, units moved, failure count, cooldown)
"""

import sqlite3
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger


@dataclass
class CycleRecord:
    """One discharge cycle"""
    cycle_number: int
    outcome: str
    item_label: Optional[str]
    moved_units: int
    returned_units: int
    consecutive_failures: int
    cooldown: bool
    recorded_at: datetime

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        data = asdict(self)
        data['recorded_at'] = self.recorded_at.isoformat()
        return data


class CycleHistoryDB:
    """
    SQLite database for cycle history

    Features:
    - Per-cycle logging
    - Recent cycle queries
    - Outcome statistics
    """

    def __init__(self, db_path: str = "discharge_history.db"):
        """
        Initialize database

        Args:
            db_path: Path to SQLite database (":memory:" for a throwaway log)
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._initialize_db()
        logger.info(f"Cycle history database initialized: {self.db_path}")

    def _initialize_db(self):
        """Initialize database and create tables"""
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self):
        """Create database tables"""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS cycles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                cycle_number INTEGER NOT NULL,
                outcome TEXT NOT NULL,
                item_label TEXT,
                moved_units INTEGER DEFAULT 0,
                returned_units INTEGER DEFAULT 0,
                consecutive_failures INTEGER DEFAULT 0,
                cooldown BOOLEAN DEFAULT 0,
                recorded_at TIMESTAMP NOT NULL,
                CONSTRAINT valid_outcome CHECK (outcome IN (
                    'moved', 'retrieved', 'empty_or_eligible',
                    'transfer_failed', 'retrieve_failed', 'foreign_item'
                ))
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_cycles_outcome ON cycles(outcome)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_cycles_recorded ON cycles(recorded_at)")

        self.conn.commit()
        logger.debug("Database tables created successfully")

    def record_cycle(self, record: CycleRecord) -> bool:
        """
        Record a cycle

        Args:
            record: Cycle record

        Returns:
            Success status
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("""
                INSERT INTO cycles (
                    cycle_number, outcome, item_label, moved_units, returned_units,
                    consecutive_failures, cooldown, recorded_at
                ) VALUES (
                    :cycle_number, :outcome, :item_label, :moved_units, :returned_units,
                    :consecutive_failures, :cooldown, :recorded_at
                )
            """, record.to_dict())

            self.conn.commit()
            logger.debug(f"Cycle recorded: #{record.cycle_number} {record.outcome}")
            return True

        except sqlite3.Error as e:
            logger.error(f"✗ Error recording cycle: {e}")
            self.conn.rollback()
            return False

    def get_recent_cycles(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Get most recent cycles

        Args:
            limit: Max rows

        Returns:
            List of cycle dicts, newest first
        """
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT * FROM cycles
            ORDER BY id DESC
            LIMIT ?
        """, (limit,))

        return [dict(row) for row in cursor.fetchall()]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Outcome statistics

        Returns:
            Dict with total cycles, per-outcome counts, discharges, cooldowns
        """
        cursor = self.conn.cursor()

        cursor.execute("SELECT outcome, COUNT(*) AS count FROM cycles GROUP BY outcome")
        by_outcome = {row['outcome']: row['count'] for row in cursor.fetchall()}

        cursor.execute("SELECT COUNT(*) AS count FROM cycles WHERE cooldown = 1")
        cooldowns = cursor.fetchone()['count']

        cursor.execute("SELECT MIN(recorded_at) AS first, MAX(recorded_at) AS last FROM cycles")
        span = cursor.fetchone()

        total = sum(by_outcome.values())
        discharges = by_outcome.get('retrieved', 0)
        failures = by_outcome.get('transfer_failed', 0) + by_outcome.get('retrieve_failed', 0)

        return {
            'total_cycles': total,
            'by_outcome': by_outcome,
            'discharges': discharges,
            'failures': failures,
            'cooldowns': cooldowns,
            'failure_rate': (failures / total * 100) if total > 0 else 0.0,
            'first_cycle_at': span['first'],
            'last_cycle_at': span['last'],
        }

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Cycle history database closed")
