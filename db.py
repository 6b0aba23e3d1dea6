import sqlite3
import uuid
from pathlib import Path
from typing import List, Tuple

from models import SyncTally


class RunDB:
    """SQLite ledger of scrape/sync runs and the SKUs that failed to sync."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def ensure_schema(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS runs (
                  run_id TEXT PRIMARY KEY,
                  scrape_url TEXT NOT NULL,
                  started_at TEXT NOT NULL,
                  finished_at TEXT,
                  total_found INTEGER,
                  scraped INTEGER,
                  skipped INTEGER,
                  created INTEGER,
                  updated INTEGER,
                  failed INTEGER
                );

                CREATE TABLE IF NOT EXISTS sync_failures (
                  failure_id INTEGER PRIMARY KEY AUTOINCREMENT,
                  run_id TEXT NOT NULL,
                  sku TEXT NOT NULL,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_failures_run ON sync_failures(run_id);
                """
            )

    def begin_run(self, started_at_iso: str, scrape_url: str) -> str:
        run_id = str(uuid.uuid4())
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO runs(run_id, scrape_url, started_at) VALUES (?, ?, ?)",
                (run_id, scrape_url, started_at_iso),
            )
        return run_id

    def record_scrape(self, run_id: str, *, total_found: int, scraped: int, skipped: int) -> None:
        with self._conn() as conn:
            conn.execute(
                "UPDATE runs SET total_found = ?, scraped = ?, skipped = ? WHERE run_id = ?",
                (total_found, scraped, skipped, run_id),
            )

    def record_sync(self, run_id: str, tally: SyncTally) -> None:
        with self._conn() as conn:
            conn.execute(
                "UPDATE runs SET created = ?, updated = ?, failed = ? WHERE run_id = ?",
                (tally.created, tally.updated, tally.failed, run_id),
            )
            conn.executemany(
                "INSERT INTO sync_failures(run_id, sku, message) VALUES (?, ?, ?)",
                [(run_id, sku, message) for sku, message in tally.errors],
            )

    def finish_run(self, run_id: str, finished_at_iso: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "UPDATE runs SET finished_at = ? WHERE run_id = ?",
                (finished_at_iso, run_id),
            )

    def failures(self, run_id: str) -> List[Tuple[str, str]]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT sku, message FROM sync_failures WHERE run_id = ? ORDER BY failure_id",
                (run_id,),
            ).fetchall()
        return [(sku, message) for sku, message in rows]
