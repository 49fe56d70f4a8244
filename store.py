import logging
from datetime import date
from typing import List, Optional

from sqlmodel import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import SlotTakenError, StoreUnavailableError
from models import Booking

logger = logging.getLogger(__name__)


class BookingStore:
    """
    Booking rows behind an AsyncSession.

    The unique constraint on (speaker_email, session_date, slot_index) is what
    keeps a slot from being booked twice; ``find`` is only a fast-path check.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, speaker_email: str, session_date: date, slot_index: int) -> Optional[Booking]:
        statement = select(Booking).where(
            Booking.speaker_email == speaker_email,
            Booking.session_date == session_date,
            Booking.slot_index == slot_index,
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc
        return result.scalars().first()

    async def for_speaker_between(self, speaker_email: str, first: date, last: date) -> List[Booking]:
        statement = select(Booking).where(
            Booking.speaker_email == speaker_email,
            Booking.session_date >= first,
            Booking.session_date <= last,
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc
        return list(result.scalars().all())

    async def between(self, first: date, last: date) -> List[Booking]:
        statement = select(Booking).where(
            Booking.session_date >= first,
            Booking.session_date <= last,
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc
        return list(result.scalars().all())

    async def for_user(self, user_email: str) -> List[Booking]:
        statement = (
            select(Booking)
            .where(Booking.user_email == user_email)
            .order_by(Booking.session_date, Booking.slot_index)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc
        return list(result.scalars().all())

    async def insert(self, booking: Booking) -> Booking:
        try:
            self.session.add(booking)
            await self.session.commit()
            await self.session.refresh(booking)
            return booking
        except IntegrityError as exc:
            # Lost the race: another request committed this slot first
            await self.session.rollback()
            logger.info(
                "Slot conflict on insert speaker=%s date=%s slot=%s",
                booking.speaker_email,
                booking.session_date,
                booking.slot_index,
            )
            raise SlotTakenError() from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreUnavailableError() from exc
