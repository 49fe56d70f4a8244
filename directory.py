from typing import List, Optional

from sqlmodel import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import StoreUnavailableError
from models import User

SPEAKER = "speaker"
USER = "user"


async def get_speaker(session: AsyncSession, email: str) -> Optional[User]:
    statement = select(User).where(User.email == email, User.user_type == SPEAKER)
    try:
        result = await session.execute(statement)
    except SQLAlchemyError as exc:
        raise StoreUnavailableError() from exc
    return result.scalars().first()


async def list_speakers(session: AsyncSession) -> List[User]:
    statement = select(User).where(User.user_type == SPEAKER).order_by(User.email)
    try:
        result = await session.execute(statement)
    except SQLAlchemyError as exc:
        raise StoreUnavailableError() from exc
    return list(result.scalars().all())
