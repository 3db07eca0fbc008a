"""
Tool: Availability Slot Store
Purpose: Explicit availability windows authored by the user

Usage:
    slots = AvailabilitySlotStore(store)
    slot = slots.create(user_id, start, end, available=True)
    slots.toggle(user_id, slot.id)
    occurrences = slots.list_for_range(user_id, range_start, range_end, tz)

Rules:
    - end must be after start; both must be timezone-aware
    - recurrence is one of none/daily/weekly/monthly
    - list_for_range returns concrete occurrences, recurrences expanded
"""

import logging
from datetime import datetime, timezone, tzinfo

from availnow.errors import NotFoundError, ValidationError
from availnow.models import AvailabilitySlot, Recurrence, require_aware, utcnow
from availnow.recurrence import expand_slots
from availnow.storage import Store
from availnow.storage.tokens import from_db_time, to_db_time

logger = logging.getLogger(__name__)


def _row_to_slot(row) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=row["id"],
        user_id=row["user_id"],
        start=from_db_time(row["start_time"]),
        end=from_db_time(row["end_time"]),
        available=bool(row["available"]),
        recurrence=Recurrence(row["recurrence"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


class AvailabilitySlotStore:
    def __init__(self, store: Store):
        self.store = store

    def create(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        available: bool = True,
        recurrence: Recurrence | str = Recurrence.NONE,
    ) -> AvailabilitySlot:
        """
        Create an explicit slot.

        Raises:
            ValidationError: end not after start, naive datetimes, bad recurrence
        """
        slot = AvailabilitySlot(
            user_id=user_id,
            start=start,
            end=end,
            available=available,
            recurrence=recurrence,
        )

        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO availability_slots
                    (id, user_id, start_time, end_time, available, recurrence, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    slot.id,
                    user_id,
                    to_db_time(slot.start),
                    to_db_time(slot.end),
                    int(slot.available),
                    slot.recurrence.value,
                    to_db_time(slot.created_at),
                    to_db_time(slot.updated_at),
                ),
            )

        logger.info(f"Created availability slot {slot.id} for user {user_id}")
        return slot

    def get(self, user_id: str, slot_id: str) -> AvailabilitySlot:
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM availability_slots WHERE id = ? AND user_id = ?",
                (slot_id, user_id),
            ).fetchone()
        if not row:
            raise NotFoundError(f"Availability slot {slot_id} not found")
        return _row_to_slot(row)

    def update(
        self,
        user_id: str,
        slot_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        available: bool | None = None,
        recurrence: Recurrence | str | None = None,
    ) -> AvailabilitySlot:
        """Update the given fields; the merged slot is validated as a whole."""
        current = self.get(user_id, slot_id)
        updated = AvailabilitySlot(
            id=current.id,
            user_id=user_id,
            start=start if start is not None else current.start,
            end=end if end is not None else current.end,
            available=current.available if available is None else available,
            recurrence=recurrence if recurrence is not None else current.recurrence,
            created_at=current.created_at,
            updated_at=utcnow(),
        )

        with self.store.transaction() as conn:
            conn.execute(
                """
                UPDATE availability_slots
                SET start_time = ?, end_time = ?, available = ?, recurrence = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    to_db_time(updated.start),
                    to_db_time(updated.end),
                    int(updated.available),
                    updated.recurrence.value,
                    to_db_time(updated.updated_at),
                    slot_id,
                    user_id,
                ),
            )
        return updated

    def toggle(self, user_id: str, slot_id: str) -> AvailabilitySlot:
        """Flip a slot between available and unavailable."""
        current = self.get(user_id, slot_id)
        return self.update(user_id, slot_id, available=not current.available)

    def delete(self, user_id: str, slot_id: str) -> None:
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM availability_slots WHERE id = ? AND user_id = ?",
                (slot_id, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Availability slot {slot_id} not found")
        logger.info(f"Deleted availability slot {slot_id} for user {user_id}")

    def has_any(self, user_id: str) -> bool:
        """True when the user has authored at least one explicit slot."""
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM availability_slots WHERE user_id = ? LIMIT 1", (user_id,)
            ).fetchone()
        return row is not None

    def list_for_range(
        self,
        user_id: str,
        range_start: datetime,
        range_end: datetime,
        tz: tzinfo = timezone.utc,
    ) -> list[AvailabilitySlot]:
        """
        Slots overlapping [range_start, range_end), recurrences expanded.

        Args:
            tz: Timezone whose wall clock recurring slots repeat in
        """
        require_aware(range_start, "range_start")
        require_aware(range_end, "range_end")
        if range_end <= range_start:
            raise ValidationError("Range end must be after its start")

        with self.store.transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM availability_slots
                WHERE user_id = ?
                  AND start_time < ?
                  AND (recurrence != 'none' OR end_time > ?)
                ORDER BY start_time
                """,
                (user_id, to_db_time(range_end), to_db_time(range_start)),
            ).fetchall()

        return expand_slots([_row_to_slot(r) for r in rows], range_start, range_end, tz)


__all__ = ["AvailabilitySlotStore"]
