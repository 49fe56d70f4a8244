from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from conftest import IDLE_SPEAKER_EMAIL, NOW, SPEAKER_EMAIL, USER_EMAIL

from availability import (
    available_speakers,
    default_range_end,
    list_open_slots,
    month_bounds,
    open_slots_from_bookings,
    speaker_availability,
)
from booking import book_slot
from errors import InvalidRangeError, InvalidTargetError
from tokens import Caller

UTC = ZoneInfo("UTC")
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)
USER = Caller(email=USER_EMAIL, role="user")


async def test_speaker_without_bookings_has_every_future_slot(session):
    slots = await list_open_slots(session, SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=UTC, now=NOW)

    assert [s.hour for s in slots] == list(range(9, 17))
    assert all(s.date() == TOMORROW for s in slots)


async def test_past_hours_of_today_are_excluded(session):
    slots = await list_open_slots(session, SPEAKER_EMAIL, TODAY, TODAY, tz=UTC, now=NOW)

    # NOW is 12:30, so 13:00 is the first open slot
    assert [s.hour for s in slots] == [13, 14, 15, 16]


async def test_range_starting_in_the_past_only_scans_the_future(session):
    slots = await list_open_slots(
        session, SPEAKER_EMAIL, TODAY - timedelta(days=10), TOMORROW, tz=UTC, now=NOW
    )

    assert slots[0] == datetime(2030, 1, 7, 13, tzinfo=UTC)
    assert len(slots) == 4 + 8
    assert all(s >= NOW for s in slots)


async def test_range_entirely_in_the_past_is_empty(session):
    slots = await list_open_slots(
        session, SPEAKER_EMAIL, TODAY - timedelta(days=10), TODAY - timedelta(days=1), tz=UTC, now=NOW
    )
    assert slots == []


async def test_week_range_is_ordered_and_on_template(session):
    slots = await list_open_slots(session, SPEAKER_EMAIL, TODAY, TODAY + timedelta(days=7), tz=UTC, now=NOW)

    assert slots == sorted(slots)
    assert len(slots) == 4 + 7 * 8
    for slot in slots:
        assert slot >= NOW
        assert 9 <= slot.hour <= 16
        assert (slot.minute, slot.second, slot.microsecond) == (0, 0, 0)


async def test_booked_slots_are_subtracted_individually(session):
    day = "2030-01-08"
    await book_slot(session, USER, SPEAKER_EMAIL, f"{day}T09:00:00", tz=UTC, now=NOW)

    slots = await list_open_slots(session, SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=UTC, now=NOW)
    assert [s.hour for s in slots] == list(range(10, 17))

    await book_slot(session, USER, SPEAKER_EMAIL, f"{day}T16:00:00", tz=UTC, now=NOW)

    slots = await list_open_slots(session, SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=UTC, now=NOW)
    assert [s.hour for s in slots] == list(range(10, 16))


async def test_bookings_of_other_speakers_do_not_block(session):
    await book_slot(session, USER, SPEAKER_EMAIL, "2030-01-08T09:00:00", tz=UTC, now=NOW)

    slots = await list_open_slots(session, IDLE_SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=UTC, now=NOW)
    assert len(slots) == 8


async def test_until_bound_stops_the_scan(session):
    until = datetime(2030, 1, 8, 11, tzinfo=UTC)
    slots = await list_open_slots(
        session, SPEAKER_EMAIL, TODAY, TODAY + timedelta(days=3), tz=UTC, now=NOW, until=until
    )

    assert slots[-1] == until
    assert len(slots) == 4 + 3


async def test_unknown_speaker_is_not_found(session):
    with pytest.raises(InvalidTargetError):
        await list_open_slots(session, "nobody@example.com", TODAY, TOMORROW, tz=UTC, now=NOW)


async def test_users_are_not_speakers(session):
    with pytest.raises(InvalidTargetError):
        await list_open_slots(session, USER_EMAIL, TODAY, TOMORROW, tz=UTC, now=NOW)


async def test_start_after_end_is_rejected(session):
    with pytest.raises(InvalidRangeError):
        await list_open_slots(session, SPEAKER_EMAIL, TOMORROW, TODAY, tz=UTC, now=NOW)


async def test_schedule_timezone_shapes_the_slots(session):
    kolkata = ZoneInfo("Asia/Kolkata")
    slots = await list_open_slots(session, SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=kolkata, now=NOW)

    assert [s.hour for s in slots] == list(range(9, 17))
    # 09:00 in Kolkata is 03:30 UTC
    assert slots[0].astimezone(timezone.utc) == datetime(2030, 1, 8, 3, 30, tzinfo=timezone.utc)


async def test_speaker_availability_passes_metadata_through(session):
    result = await speaker_availability(session, SPEAKER_EMAIL, TOMORROW, TOMORROW, tz=UTC, now=NOW)

    assert result["email"] == SPEAKER_EMAIL
    assert result["expertise"] == "Python, FastAPI"
    assert result["price_per_session"] == 100.0
    assert len(result["available_slots"]) == 8


async def test_available_speakers_covers_the_next_week(session):
    result = await available_speakers(session, tz=UTC, days=7, now=NOW)

    emails = [entry["email"] for entry in result]
    assert emails == sorted([SPEAKER_EMAIL, IDLE_SPEAKER_EMAIL])
    for entry in result:
        slots = entry["available_slots"]
        assert slots[0] == datetime(2030, 1, 7, 13, tzinfo=UTC)
        # Closed window: nothing later than exactly one week from now
        assert slots[-1] <= NOW + timedelta(days=7)
        assert slots[-1] == datetime(2030, 1, 14, 12, tzinfo=UTC)


def test_open_slots_from_bookings_is_pure():
    booked = {(date(2030, 1, 8), 0), (date(2030, 1, 8), 7)}
    slots = open_slots_from_bookings(booked, date(2030, 1, 8), date(2030, 1, 8), tz=UTC, now=NOW)
    assert [s.hour for s in slots] == list(range(10, 16))


def test_month_bounds():
    assert month_bounds(2030, 2) == (date(2030, 2, 1), date(2030, 2, 28))
    assert month_bounds(2032, 2) == (date(2032, 2, 1), date(2032, 2, 29))
    assert month_bounds(2030, 12) == (date(2030, 12, 1), date(2030, 12, 31))


@pytest.mark.parametrize("month", [0, 13])
def test_month_bounds_rejects_bad_month(month):
    with pytest.raises(InvalidRangeError):
        month_bounds(2030, month)


async def test_range_ending_on_the_last_representable_day(session):
    last = date.max
    slots = await list_open_slots(session, SPEAKER_EMAIL, last - timedelta(days=1), last, tz=UTC, now=NOW)

    assert len(slots) == 2 * 8
    assert slots[-1] == datetime(9999, 12, 31, 16, tzinfo=UTC)


async def test_overlong_range_is_rejected(session):
    with pytest.raises(InvalidRangeError):
        await list_open_slots(session, SPEAKER_EMAIL, TODAY, date(9999, 12, 30), tz=UTC, now=NOW)


async def test_range_limit_is_configurable(session):
    end = TODAY + timedelta(days=3)

    with pytest.raises(InvalidRangeError):
        await speaker_availability(session, SPEAKER_EMAIL, TODAY, end, tz=UTC, now=NOW, max_days=3)

    result = await speaker_availability(session, SPEAKER_EMAIL, TODAY, end, tz=UTC, now=NOW, max_days=4)
    assert len(result["available_slots"]) == 4 + 3 * 8


def test_default_range_end_is_clamped():
    assert default_range_end(date(2030, 1, 7), 7) == date(2030, 1, 14)
    assert default_range_end(date(9999, 12, 30), 7) == date.max


async def test_available_speakers_reads_bookings_once(session, monkeypatch):
    await book_slot(session, USER, SPEAKER_EMAIL, "2030-01-08T09:00:00", tz=UTC, now=NOW)

    statements = []
    execute = session.execute

    async def counting_execute(statement, *args, **kwargs):
        statements.append(statement)
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", counting_execute)
    result = await available_speakers(session, tz=UTC, days=7, now=NOW)

    # One speaker listing plus one bookings query, regardless of speaker count
    assert len(statements) == 2
    by_email = {entry["email"]: entry["available_slots"] for entry in result}
    assert datetime(2030, 1, 8, 9, tzinfo=UTC) not in by_email[SPEAKER_EMAIL]
    assert datetime(2030, 1, 8, 9, tzinfo=UTC) in by_email[IDLE_SPEAKER_EMAIL]
