"""
Local key-value memory using SQLite.
Stores values with a per-key expiry; used to cache inference-profile lookups
between invocations.
"""

import logging
import sqlite3
import time
from pathlib import Path
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class Memory:
    """SQLite-based key-value store with per-key TTL."""

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time):
        """Open (or create) the database file and its schema."""
        self.db_path = db_path
        self.clock = clock

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(db_path, timeout=5.0)
        self._create_tables()

    def _create_tables(self):
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)

    def get(self, key: str) -> Optional[str]:
        """Return the live value for key, or None if missing or expired."""
        row = self.conn.execute(
            "SELECT value, expires_at FROM entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None

        value, expires_at = row
        if expires_at <= self.clock():
            logger.debug(f"cache entry {key} expired")
            with self.conn:
                self.conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            return None
        return value

    def set(self, key: str, value: str, ttl: float) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO entries (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self.clock() + ttl),
            )

    def purge_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM entries WHERE expires_at <= ?", (self.clock(),))
        return cursor.rowcount

    def close(self):
        """Close the database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
