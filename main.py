import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from availability import available_speakers, default_range_end, month_bounds, speaker_availability
from booking import book_slot, list_user_bookings
from config import Settings
from database import build_engine, build_sessionmaker, get_session, init_db
from errors import register_exception_handlers
from models import Booking
from notifier import Notifier
from schedule import to_utc
from tokens import Caller, get_caller

logger = logging.getLogger(__name__)


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    speaker_email: str
    session_date: str  # ISO-8601, e.g. 2026-10-20T10:00:00


class BookingOut(BaseModel):
    id: int
    user_email: str
    speaker_email: str
    session_timestamp: datetime
    session_date: date
    slot_index: int


class SpeakerSlots(BaseModel):
    email: str
    expertise: Optional[str]
    price_per_session: Optional[float]
    available_slots: List[datetime]


def booking_out(booking: Booking) -> BookingOut:
    return BookingOut(
        id=booking.id,
        user_email=booking.user_email,
        speaker_email=booking.speaker_email,
        session_timestamp=to_utc(booking.session_timestamp),
        session_date=booking.session_date,
        slot_index=booking.slot_index,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


booking_router = APIRouter(prefix="/booking", tags=["booking"])
speakers_router = APIRouter(prefix="/speakers", tags=["speakers"])


# --- POST /booking/book-session ---
@booking_router.post("/book-session", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def book_session(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
):
    booking = await book_slot(
        session,
        caller,
        booking_data.speaker_email,
        booking_data.session_date,
        tz=settings.tz,
    )
    # Runs after the response; failures are logged inside the notifier
    background_tasks.add_task(notifier.booking_confirmed, booking)
    return booking_out(booking)


# --- GET /booking/mine ---
@booking_router.get("/mine", response_model=List[BookingOut])
async def my_bookings(
    caller: Caller = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return [booking_out(b) for b in await list_user_bookings(session, caller)]


# --- GET /speakers/available ---
@speakers_router.get("/available", response_model=List[SpeakerSlots])
async def speakers_with_open_slots(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await available_speakers(session, tz=settings.tz, days=settings.availability_days)


# --- GET /speakers/availability/{email}/{year}/{month} ---
@speakers_router.get("/availability/{email}/{year}/{month}", response_model=SpeakerSlots)
async def speaker_month_availability(
    email: str,
    year: int,
    month: int,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    first, last = month_bounds(year, month)
    return await speaker_availability(
        session, email, first, last, tz=settings.tz, max_days=settings.max_range_days
    )


# --- GET /speakers/{email}/slots ---
@speakers_router.get("/{email}/slots", response_model=SpeakerSlots)
async def speaker_open_slots(
    email: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    today = datetime.now(timezone.utc).astimezone(settings.tz).date()
    start = start or today
    end = end or default_range_end(start, settings.availability_days)
    return await speaker_availability(
        session, email, start, end, tz=settings.tz, max_days=settings.max_range_days
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    app = FastAPI(title="Speaker Session Booking")

    # 1. Configuration and collaborators, constructed once
    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.notifier = Notifier(settings)

    @app.on_event("startup")
    async def on_startup():
        await init_db(engine)
        logger.info("Booking service started (schedule timezone %s)", settings.schedule_timezone)

    @app.on_event("shutdown")
    async def on_shutdown():
        await engine.dispose()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(booking_router)
    app.include_router(speakers_router)
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app
