"""
Run Ledger Module - SQLite Implementation
Append-only storage for completed run reports and their per-tenant outcomes
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from insight_runner.models.run import Outcome, RunReport, Tenant
from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)


class RunLedger:
    """
    SQLite-backed history of insight generation runs.
    A run id can be written once; reports are never updated in place.
    """

    def __init__(self, db_path: str = "data/insight_runs.db"):
        logger.info(f"Initializing RunLedger with db_path={db_path}")
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()
        logger.info("RunLedger initialized successfully")

    def _init_schema(self):
        """Creates database schema if not exists"""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS runs (
                run_id TEXT PRIMARY KEY,
                trigger TEXT NOT NULL CHECK(trigger IN ('scheduled', 'manual')),
                tenants_processed INTEGER NOT NULL,
                tenants_succeeded INTEGER NOT NULL,
                total_items_produced INTEGER NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS run_outcomes (
                run_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                tenant_id TEXT NOT NULL,
                tenant_name TEXT,
                succeeded INTEGER NOT NULL,
                items_produced INTEGER NOT NULL,
                error_message TEXT,
                PRIMARY KEY (run_id, position),
                FOREIGN KEY (run_id) REFERENCES runs(run_id)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_outcomes_tenant
            ON run_outcomes(tenant_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_runs_started
            ON runs(started_at)
        """)

        self.conn.commit()

    def save_run(self, report: RunReport) -> str:
        """
        Persists a completed run report.

        Returns:
            run_id

        Raises:
            sqlite3.IntegrityError: If the run id was already saved
        """
        logger.info(
            f"Saving run {report.run_id}: {report.tenants_succeeded}/"
            f"{report.tenants_processed} tenants succeeded"
        )

        with self.conn:
            self.conn.execute(
                """
                INSERT INTO runs
                (run_id, trigger, tenants_processed, tenants_succeeded,
                 total_items_produced, started_at, finished_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    report.run_id,
                    report.trigger,
                    report.tenants_processed,
                    report.tenants_succeeded,
                    report.total_items_produced,
                    report.started_at.isoformat(),
                    report.finished_at.isoformat(),
                ),
            )
            self.conn.executemany(
                """
                INSERT INTO run_outcomes
                (run_id, position, tenant_id, tenant_name, succeeded,
                 items_produced, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                [
                    (
                        report.run_id,
                        position,
                        outcome.tenant.tenant_id,
                        outcome.tenant.name,
                        int(outcome.succeeded),
                        outcome.items_produced,
                        outcome.error_message,
                    )
                    for position, outcome in enumerate(report.outcomes)
                ],
            )

        return report.run_id

    def get_run(self, run_id: str) -> Optional[RunReport]:
        """Rebuilds a stored report, outcomes in their original order"""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,))
        run_row = cursor.fetchone()
        if run_row is None:
            logger.debug(f"Run {run_id} not found in ledger")
            return None

        cursor.execute(
            """
            SELECT tenant_id, tenant_name, succeeded, items_produced, error_message
            FROM run_outcomes
            WHERE run_id = ?
            ORDER BY position
        """,
            (run_id,),
        )
        outcomes = [
            Outcome(
                tenant=Tenant(tenant_id=row["tenant_id"], name=row["tenant_name"] or ""),
                succeeded=bool(row["succeeded"]),
                items_produced=row["items_produced"],
                error_message=row["error_message"] or "",
            )
            for row in cursor.fetchall()
        ]

        return RunReport.from_outcomes(
            outcomes,
            started_at=datetime.fromisoformat(run_row["started_at"]),
            finished_at=datetime.fromisoformat(run_row["finished_at"]),
            trigger=run_row["trigger"],
            run_id=run_row["run_id"],
        )

    def list_runs(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Most recent runs first, summary columns only.

        Returns:
            List of run records
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT
                run_id,
                trigger,
                tenants_processed,
                tenants_succeeded,
                total_items_produced,
                started_at,
                finished_at
            FROM runs
            ORDER BY started_at DESC
            LIMIT ?
        """,
            (limit,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def get_tenant_history(self, tenant_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Per-run outcomes for one tenant, newest first"""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT
                r.run_id,
                r.started_at,
                o.succeeded,
                o.items_produced,
                o.error_message
            FROM run_outcomes o
            JOIN runs r ON r.run_id = o.run_id
            WHERE o.tenant_id = ?
            ORDER BY r.started_at DESC
            LIMIT ?
        """,
            (tenant_id, limit),
        )
        history = []
        for row in cursor.fetchall():
            record = dict(row)
            record["succeeded"] = bool(record["succeeded"])
            history.append(record)
        return history

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """
        Returns summary statistics for monitoring dashboard.
        """
        cursor = self.conn.cursor()

        cursor.execute("SELECT COUNT(*) FROM runs")
        total_runs = cursor.fetchone()[0]

        cursor.execute("""
            SELECT
                COUNT(*) AS run_count,
                COALESCE(SUM(tenants_processed), 0) AS tenants_processed,
                COALESCE(SUM(tenants_processed - tenants_succeeded), 0) AS tenant_failures,
                COALESCE(SUM(total_items_produced), 0) AS items_produced,
                SUM(CASE WHEN tenants_succeeded < tenants_processed THEN 1 ELSE 0 END)
                    AS runs_with_failures
            FROM runs
            WHERE datetime(started_at) >= datetime('now', '-30 days')
        """)
        row = cursor.fetchone()

        return {
            "total_runs": total_runs,
            "last_30_days": {
                "run_count": row["run_count"],
                "runs_with_failures": row["runs_with_failures"] or 0,
                "tenants_processed": row["tenants_processed"],
                "tenant_failures": row["tenant_failures"],
                "items_produced": row["items_produced"],
            },
        }

    def close(self):
        """Close database connection"""
        logger.info("Closing RunLedger database connection")
        self.conn.close()
