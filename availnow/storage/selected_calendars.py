"""Calendars a user has chosen to include in availability."""

import logging

from availnow.models import Provider, SelectedCalendar, utcnow
from availnow.storage import Store
from availnow.storage.tokens import from_db_time, to_db_time

logger = logging.getLogger(__name__)


class SelectedCalendarStore:
    def __init__(self, store: Store):
        self.store = store

    def list_for_user(self, user_id: str, provider: Provider | str | None = None) -> list[SelectedCalendar]:
        query = "SELECT * FROM selected_calendars WHERE user_id = ?"
        params: list = [user_id]
        if provider is not None:
            query += " AND provider = ?"
            params.append(Provider.parse(provider).value)
        query += " ORDER BY provider, created_at, calendar_id"

        with self.store.transaction() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            SelectedCalendar(
                user_id=row["user_id"],
                calendar_id=row["calendar_id"],
                provider=row["provider"],
                created_at=from_db_time(row["created_at"]),
            )
            for row in rows
        ]

    def replace(self, user_id: str, calendars: list[SelectedCalendar]) -> list[SelectedCalendar]:
        """
        Replace the user's whole selection (delete-then-insert, one transaction).

        Entries for other users are ignored; duplicates collapse.
        """
        now = utcnow()
        seen = set()
        rows = []
        for cal in calendars:
            key = (cal.provider.value, cal.calendar_id)
            if cal.user_id != user_id or key in seen:
                continue
            seen.add(key)
            rows.append((user_id, cal.calendar_id, cal.provider.value, to_db_time(now)))

        with self.store.transaction() as conn:
            conn.execute("DELETE FROM selected_calendars WHERE user_id = ?", (user_id,))
            conn.executemany(
                """
                INSERT INTO selected_calendars (user_id, calendar_id, provider, created_at)
                VALUES (?, ?, ?, ?)
                """,
                rows,
            )

        logger.info(f"Saved {len(rows)} selected calendars for user {user_id}")
        return self.list_for_user(user_id)

    def delete_for_provider(self, user_id: str, provider: Provider | str) -> int:
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM selected_calendars WHERE user_id = ? AND provider = ?",
                (user_id, Provider.parse(provider).value),
            )
            return cursor.rowcount


__all__ = ["SelectedCalendarStore"]
