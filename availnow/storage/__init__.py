"""SQLite persistence for AvailNow

Every store takes a Store in its constructor; nothing here holds a
module-level connection.

Components:
    tokens.py: OAuth credentials (with optional encryption)
    pending_auth.py: In-progress authorizations keyed by state
    selected_calendars.py: Calendars included in availability
    slots.py: Explicit availability slots
    business_hours.py: Working-hours policy per user
    widget_stats.py: Widget view/click/booking counters
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from availnow import PROJECT_ROOT
from availnow.errors import PersistenceError

logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS oauth_credentials (
        user_id TEXT NOT NULL,
        provider TEXT NOT NULL,
        access_token TEXT NOT NULL,
        refresh_token TEXT,
        expires_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (user_id, provider)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pending_authorizations (
        state TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        provider TEXT NOT NULL,
        code_verifier TEXT,
        expires_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS selected_calendars (
        user_id TEXT NOT NULL,
        calendar_id TEXT NOT NULL,
        provider TEXT NOT NULL DEFAULT 'google',
        created_at TEXT NOT NULL,
        PRIMARY KEY (user_id, provider, calendar_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS availability_slots (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        available INTEGER NOT NULL DEFAULT 1,
        recurrence TEXT NOT NULL DEFAULT 'none',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS business_hours (
        user_id TEXT PRIMARY KEY,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        working_days TEXT NOT NULL,
        buffer_before INTEGER NOT NULL DEFAULT 0,
        buffer_after INTEGER NOT NULL DEFAULT 0,
        timezone TEXT NOT NULL DEFAULT 'UTC',
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS widget_stats (
        user_id TEXT PRIMARY KEY,
        views INTEGER NOT NULL DEFAULT 0,
        clicks INTEGER NOT NULL DEFAULT 0,
        bookings INTEGER NOT NULL DEFAULT 0,
        last_updated TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_slots_user_start ON availability_slots(user_id, start_time)",
    "CREATE INDEX IF NOT EXISTS idx_pending_expires ON pending_authorizations(expires_at)",
]


class Store:
    """
    One SQLite database file.

    Connections are opened per operation; the schema is created on the
    first connection.
    """

    def __init__(self, db_path: Path | str):
        path = Path(db_path)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        self.db_path = path
        self._initialized = False

    def get_connection(self) -> sqlite3.Connection:
        """
        Get database connection, creating tables if needed.

        Returns:
            SQLite connection with row_factory set
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), timeout=10)
            conn.row_factory = sqlite3.Row
            if not self._initialized:
                for statement in SCHEMA:
                    conn.execute(statement)
                conn.commit()
                self._initialized = True
            return conn
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Database unavailable: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction; commit on success."""
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database operation failed: {e}")
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


__all__ = ["Store", "SCHEMA"]
