"""Half-open interval comparison shared by the engine and the slot store."""

from datetime import datetime


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """
    True when [start_a, end_a) and [start_b, end_b) share any instant.

    Touching endpoints do not overlap: a meeting ending at 10:00 leaves a
    10:00 bucket free.
    """
    return start_a < end_b and start_b < end_a
