"""Working-hours policy per user, falling back to configured defaults."""

import json

from availnow.models import BusinessHours, utcnow
from availnow.storage import Store
from availnow.storage.tokens import to_db_time


class BusinessHoursStore:
    def __init__(self, store: Store, defaults: BusinessHours | None = None):
        self.store = store
        self.defaults = defaults or BusinessHours()

    def get(self, user_id: str) -> BusinessHours:
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM business_hours WHERE user_id = ?", (user_id,)
            ).fetchone()

        if not row:
            return BusinessHours.from_dict(self.defaults.to_dict())

        return BusinessHours(
            start_time=row["start_time"],
            end_time=row["end_time"],
            working_days=json.loads(row["working_days"]),
            buffer_before=row["buffer_before"],
            buffer_after=row["buffer_after"],
            timezone=row["timezone"],
        )

    def save(self, user_id: str, hours: BusinessHours) -> BusinessHours:
        data = hours.to_dict()
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO business_hours
                    (user_id, start_time, end_time, working_days, buffer_before, buffer_after, timezone, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    working_days = excluded.working_days,
                    buffer_before = excluded.buffer_before,
                    buffer_after = excluded.buffer_after,
                    timezone = excluded.timezone,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    data["start_time"],
                    data["end_time"],
                    json.dumps(data["working_days"]),
                    data["buffer_before"],
                    data["buffer_after"],
                    data["timezone"],
                    to_db_time(utcnow()),
                ),
            )
        return self.get(user_id)


__all__ = ["BusinessHoursStore"]
