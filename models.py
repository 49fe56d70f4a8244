from typing import Optional
from datetime import date, datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(primary_key=True)
    user_type: str = Field(index=True)  # "user" or "speaker"
    expertise: Optional[str] = None
    price_per_session: Optional[float] = None


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # Database-level protection against double booking
        UniqueConstraint("speaker_email", "session_date", "slot_index", name="unique_speaker_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_email: str = Field(index=True)
    speaker_email: str = Field(index=True)
    session_timestamp: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    session_date: date = Field(index=True)  # calendar date in the schedule timezone
    slot_index: int  # 0 (09:00) ... 7 (16:00)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
