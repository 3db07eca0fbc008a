"""
Tool: Widget Event Tracker
Purpose: Count widget views, clicks and bookings per owner

Telemetry must never break the widget: record_event() logs and swallows
every failure.
"""

import logging

from availnow.models import WidgetEventKind, WidgetStats, utcnow
from availnow.storage import Store
from availnow.storage.tokens import from_db_time, to_db_time

logger = logging.getLogger(__name__)

_COUNTER_COLUMNS = {
    WidgetEventKind.VIEW: "views",
    WidgetEventKind.CLICK: "clicks",
    WidgetEventKind.BOOKING: "bookings",
}


class WidgetEventTracker:
    def __init__(self, store: Store):
        self.store = store

    def record_event(self, user_id: str, kind: WidgetEventKind | str) -> bool:
        """
        Increment one counter, creating the row with zeroed counters if absent.

        Returns:
            True if recorded, False if the event was dropped
        """
        try:
            column = _COUNTER_COLUMNS[WidgetEventKind(kind)]
            now = to_db_time(utcnow())
            with self.store.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO widget_stats (user_id, views, clicks, bookings, last_updated)
                    VALUES (?, 0, 0, 0, ?)
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (user_id, now),
                )
                conn.execute(
                    f"UPDATE widget_stats SET {column} = {column} + 1, last_updated = ? WHERE user_id = ?",
                    (now, user_id),
                )
            return True
        except Exception as e:
            logger.warning(f"Dropped widget {kind} event for {user_id}: {e}")
            return False

    def get_stats(self, user_id: str) -> WidgetStats:
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM widget_stats WHERE user_id = ?", (user_id,)
            ).fetchone()

        if not row:
            return WidgetStats(user_id=user_id)

        return WidgetStats(
            user_id=user_id,
            views=row["views"],
            clicks=row["clicks"],
            bookings=row["bookings"],
            last_updated=from_db_time(row["last_updated"]),
        )


__all__ = ["WidgetEventTracker"]
