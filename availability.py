"""
Availability calculator.

Open slots are the cartesian product of calendar days and template hours,
minus anything in the past and minus the (date, slot) pairs the speaker
already has bookings for. The result is advisory: a listed slot may be taken
before the caller books it, and only the allocator decides.
"""

import calendar
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from directory import get_speaker, list_speakers
from errors import InvalidRangeError, InvalidTargetError
from models import User
from schedule import SLOT_COUNT, slot_start
from store import BookingStore

logger = logging.getLogger(__name__)

# Longest range a single query may scan, in days (covers any calendar month)
MAX_RANGE_DAYS = 93


def _days(first: date, last: date) -> Iterator[date]:
    # Offsets rather than stepping, so a range ending on date.max never steps past it
    for offset in range((last - first).days + 1):
        yield first + timedelta(days=offset)


def check_range(start: date, end: date, max_days: int = MAX_RANGE_DAYS) -> None:
    if start > end:
        raise InvalidRangeError("start date must not be after end date")
    if (end - start).days + 1 > max_days:
        raise InvalidRangeError(f"date range must not exceed {max_days} days")


def default_range_end(start: date, days: int) -> date:
    """``start + days``, clamped to the last representable date."""
    if (date.max - start).days < days:
        return date.max
    return start + timedelta(days=days)


def open_slots_from_bookings(
    booked: Set[Tuple[date, int]],
    first: date,
    last: date,
    *,
    tz: ZoneInfo,
    now: datetime,
    until: Optional[datetime] = None,
) -> List[datetime]:
    """Pure part of the calculation: walk the template and skip past or booked slots."""
    slots = []
    for day in _days(first, last):
        for index in range(SLOT_COUNT):
            candidate = slot_start(day, index, tz)
            # Closed upper bound: nothing after ``until`` on this day or any later one
            if until is not None and candidate > until:
                return slots
            if candidate < now:
                continue
            if (day, index) in booked:
                continue
            slots.append(candidate)
    return slots


async def list_open_slots(
    session: AsyncSession,
    speaker_email: str,
    start: date,
    end: date,
    *,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
    until: Optional[datetime] = None,
    max_days: int = MAX_RANGE_DAYS,
) -> List[datetime]:
    check_range(start, end, max_days)

    speaker = await get_speaker(session, speaker_email)
    if speaker is None:
        raise InvalidTargetError()

    return await _open_slots_for(session, speaker, start, end, tz=tz, now=now, until=until)


async def _open_slots_for(
    session: AsyncSession,
    speaker: User,
    start: date,
    end: date,
    *,
    tz: ZoneInfo,
    now: Optional[datetime],
    until: Optional[datetime],
) -> List[datetime]:
    now = now or datetime.now(timezone.utc)
    first = max(start, now.astimezone(tz).date())
    if first > end:
        # Whole range is in the past
        return []

    # Single query for the scanned range, then O(1) lookups
    bookings = await BookingStore(session).for_speaker_between(speaker.email, first, end)
    booked = {(b.session_date, b.slot_index) for b in bookings}

    return open_slots_from_bookings(booked, first, end, tz=tz, now=now, until=until)


def speaker_payload(speaker: User, slots: List[datetime]) -> Dict[str, Any]:
    return {
        "email": speaker.email,
        "expertise": speaker.expertise,
        "price_per_session": speaker.price_per_session,
        "available_slots": slots,
    }


async def speaker_availability(
    session: AsyncSession,
    speaker_email: str,
    start: date,
    end: date,
    *,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
    max_days: int = MAX_RANGE_DAYS,
) -> Dict[str, Any]:
    check_range(start, end, max_days)

    speaker = await get_speaker(session, speaker_email)
    if speaker is None:
        raise InvalidTargetError()

    slots = await _open_slots_for(session, speaker, start, end, tz=tz, now=now, until=None)
    return speaker_payload(speaker, slots)


async def available_speakers(
    session: AsyncSession,
    *,
    tz: ZoneInfo,
    days: int = 7,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Every speaker with at least one open slot between now and ``days`` from now."""
    now = now or datetime.now(timezone.utc)
    until = now + timedelta(days=days)
    first = now.astimezone(tz).date()
    last = until.astimezone(tz).date()

    speakers = await list_speakers(session)

    # One query for every speaker's bookings in the window, grouped in memory
    booked: Dict[str, Set[Tuple[date, int]]] = defaultdict(set)
    for b in await BookingStore(session).between(first, last):
        booked[b.speaker_email].add((b.session_date, b.slot_index))

    result = []
    for speaker in speakers:
        slots = open_slots_from_bookings(
            booked.get(speaker.email, set()), first, last, tz=tz, now=now, until=until
        )
        if slots:
            result.append(speaker_payload(speaker, slots))

    logger.debug("%d speakers with open slots in the next %d days", len(result), days)
    return result


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12 or not date.min.year <= year <= date.max.year:
        raise InvalidRangeError(f"Invalid month: {year}-{month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
