"""
Booking allocator.

Single-shot: validate the caller, the speaker and the requested time, derive
the slot index, then insert. The pre-insert lookup only produces a friendlier
early rejection; a racing duplicate is stopped by the unique constraint in
``BookingStore.insert`` and reported the same way.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from directory import USER, get_speaker
from errors import ForbiddenError, InvalidSlotError, InvalidTargetError, SlotTakenError
from models import Booking
from schedule import parse_requested_timestamp, validate_slot_start
from store import BookingStore
from tokens import Caller

logger = logging.getLogger(__name__)


async def book_slot(
    session: AsyncSession,
    caller: Caller,
    speaker_email: str,
    requested: str,
    *,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> Booking:
    # 1. Only plain users may book
    if caller.role != USER:
        raise ForbiddenError("Only users can book sessions")

    # 2. Target must be a speaker
    speaker = await get_speaker(session, speaker_email)
    if speaker is None:
        raise InvalidTargetError("Speaker not available")

    # 3. Structured parse, then hour/minute checks in the schedule timezone
    local = parse_requested_timestamp(requested, tz)
    index = validate_slot_start(local)

    now = now or datetime.now(timezone.utc)
    if local < now:
        raise InvalidSlotError("Invalid session time. Sessions cannot be booked in the past.")

    # 4-5. Fast-path conflict check
    store = BookingStore(session)
    session_date = local.date()
    if await store.find(speaker.email, session_date, index) is not None:
        raise SlotTakenError()

    # 6. Insert; the unique constraint arbitrates concurrent attempts
    booking = Booking(
        user_email=caller.email,
        speaker_email=speaker.email,
        session_timestamp=local.astimezone(timezone.utc),
        session_date=session_date,
        slot_index=index,
    )
    booking = await store.insert(booking)

    logger.info(
        "Booked speaker=%s user=%s date=%s slot=%s",
        booking.speaker_email,
        booking.user_email,
        booking.session_date,
        booking.slot_index,
    )
    return booking


async def list_user_bookings(session: AsyncSession, caller: Caller) -> List[Booking]:
    if caller.role != USER:
        raise ForbiddenError("Only users have booked sessions")
    return await BookingStore(session).for_user(caller.email)
