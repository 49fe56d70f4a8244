"""
Schedule template: the fixed daily window of bookable hourly slots.

Sessions start on the hour between 09:00 and 16:00 (inclusive) in the
configured schedule timezone. Slot index is ``hour - 9``, so 09:00 is slot 0
and 16:00 is slot 7.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from errors import InvalidSlotError

FIRST_HOUR = 9
LAST_HOUR = 16
SLOT_HOURS = range(FIRST_HOUR, LAST_HOUR + 1)
SLOT_COUNT = len(SLOT_HOURS)


def slot_index(hour: int) -> int:
    if hour not in SLOT_HOURS:
        raise InvalidSlotError()
    return hour - FIRST_HOUR


def slot_hour(index: int) -> int:
    if not 0 <= index < SLOT_COUNT:
        raise InvalidSlotError()
    return index + FIRST_HOUR


def slot_start(day: date, index: int, tz: ZoneInfo) -> datetime:
    """Aware timestamp at which slot ``index`` begins on ``day``."""
    return datetime.combine(day, time(slot_hour(index)), tzinfo=tz)


def parse_requested_timestamp(raw: str, tz: ZoneInfo) -> datetime:
    """
    Parse an ISO-8601 string into an aware datetime in the schedule timezone.

    A value without an offset is read as wall-clock time in ``tz``; a value
    with an offset is converted into ``tz``.
    """
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidSlotError(f"Invalid session time: {raw!r} is not an ISO-8601 timestamp")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def validate_slot_start(local: datetime) -> int:
    """Return the slot index for a schedule-local start time, or raise InvalidSlotError."""
    if local.minute or local.second or local.microsecond:
        raise InvalidSlotError()
    return slot_index(local.hour)


def to_utc(value: datetime) -> datetime:
    # SQLite hands back naive values; everything we persist is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
