"""
Alternative slot suggestions.

Walks a 30-minute grid inside working hours, day by day from the preferred
date, collecting windows that clear every scheduled interview of the employer
by the buffer. The day-by-day search stops after `max_days`; a short result
is reported through `exhausted` rather than searching forever.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

try:
    from zoneinfo import ZoneInfo
except Exception:  # pragma: no cover
    ZoneInfo = None  # type: ignore

from ..config import (
    DEFAULT_INTERVIEW_MINUTES,
    DEFAULT_SUGGESTION_COUNT,
    INTERVIEW_BUFFER_MINUTES,
    SCHEDULING_TIMEZONE,
    SLOT_SEARCH_MAX_DAYS,
    SLOT_STEP_MINUTES,
    WORKING_HOURS_END,
    WORKING_HOURS_START,
)
from ..utils.error_handlers import ValidationError
from .clock import Clock, system_clock
from .conflicts import scheduled_interviews_near
from .intervals import as_utc, collides_with_buffer, interview_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime

    def as_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass
class SlotSuggestions:
    slots: list[Slot] = field(default_factory=list)
    requested: int = 0
    days_searched: int = 0
    exhausted: bool = False


def _zone(name: str | None):
    if not name or name.upper() == "UTC" or ZoneInfo is None:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except Exception:
        # On Windows, the IANA tz database may be missing; fall back safely.
        logger.warning("Unknown scheduling timezone %r, using UTC", name)
        return timezone.utc


def local_date(moment: datetime, timezone_name: str | None = None) -> date:
    """Calendar day of `moment` in the scheduling zone."""
    return as_utc(moment).astimezone(_zone(timezone_name or SCHEDULING_TIMEZONE)).date()


def _working_window(day: date, start_hour: int, end_hour: int, tz) -> tuple[datetime, datetime]:  # noqa: ANN001
    open_at = datetime.combine(day, time(hour=start_hour), tzinfo=tz)
    if end_hour >= 24:
        close_at = datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz)
    else:
        close_at = datetime.combine(day, time(hour=end_hour), tzinfo=tz)
    return open_at.astimezone(timezone.utc), close_at.astimezone(timezone.utc)


def free_slots_for_day(
    db: Session,
    *,
    employer_id: int,
    day: date,
    duration: int,
    limit: int,
    working_hours_start: int = WORKING_HOURS_START,
    working_hours_end: int = WORKING_HOURS_END,
    buffer_minutes: int = INTERVIEW_BUFFER_MINUTES,
    step_minutes: int = SLOT_STEP_MINUTES,
    not_before: datetime | None = None,
    tz=None,  # noqa: ANN001
    exclude_interview_id: int | None = None,
) -> list[Slot]:
    tz = tz or _zone(SCHEDULING_TIMEZONE)
    open_at, close_at = _working_window(day, working_hours_start, working_hours_end, tz)
    length = timedelta(minutes=int(duration))
    if open_at + length > close_at:
        return []

    pad = timedelta(minutes=int(buffer_minutes))
    booked = [
        interview_window(it)
        for it in scheduled_interviews_near(
            db,
            employer_id=employer_id,
            range_start=open_at - pad,
            range_end=close_at + pad,
        )
        if exclude_interview_id is None or int(it.id) != int(exclude_interview_id)
    ]

    found: list[Slot] = []
    step = timedelta(minutes=int(step_minutes))
    current = open_at
    while current + length <= close_at and len(found) < limit:
        slot_end = current + length
        if not_before is not None and current < not_before:
            current += step
            continue
        if not any(collides_with_buffer(current, slot_end, b_start, b_end, buffer_minutes) for b_start, b_end in booked):
            found.append(Slot(start=current, end=slot_end))
        current += step
    return found


def suggest_slots(
    db: Session,
    employer_id: int,
    preferred_date: date | None = None,
    duration: int = DEFAULT_INTERVIEW_MINUTES,
    number_of_suggestions: int = DEFAULT_SUGGESTION_COUNT,
    working_hours_start: int = WORKING_HOURS_START,
    working_hours_end: int = WORKING_HOURS_END,
    *,
    max_days: int = SLOT_SEARCH_MAX_DAYS,
    buffer_minutes: int = INTERVIEW_BUFFER_MINUTES,
    clock: Clock | None = None,
    timezone_name: str | None = None,
    exclude_interview_id: int | None = None,
) -> SlotSuggestions:
    """
    Propose up to `number_of_suggestions` conflict-free windows, chronologically.

    Slots that already started (per the clock) are skipped. Read-only.
    `exclude_interview_id` leaves one booking out of the busy set, so an
    interview being moved does not block its own alternatives.
    """
    clock = clock or system_clock
    tz = _zone(timezone_name or SCHEDULING_TIMEZONE)

    if not (0 <= working_hours_start < working_hours_end <= 24):
        raise ValidationError("Working hours must satisfy 0 <= start < end <= 24")
    if number_of_suggestions < 1:
        raise ValidationError("number_of_suggestions must be at least 1")
    if max_days < 1:
        raise ValidationError("max_days must be at least 1")
    if duration is None or int(duration) <= 0:
        raise ValidationError("Duration must be a positive number of minutes")

    now = clock.now()
    if preferred_date is None:
        preferred_date = now.astimezone(tz).date()

    result = SlotSuggestions(requested=int(number_of_suggestions))
    for offset in range(int(max_days)):
        remaining = result.requested - len(result.slots)
        if remaining <= 0:
            break
        day = preferred_date + timedelta(days=offset)
        result.slots.extend(
            free_slots_for_day(
                db,
                employer_id=employer_id,
                day=day,
                duration=int(duration),
                limit=remaining,
                working_hours_start=working_hours_start,
                working_hours_end=working_hours_end,
                buffer_minutes=buffer_minutes,
                not_before=now,
                tz=tz,
                exclude_interview_id=exclude_interview_id,
            )
        )
        result.days_searched = offset + 1

    result.exhausted = len(result.slots) < result.requested
    if result.exhausted:
        logger.info(
            "Employer %s: only %d of %d slots found within %d day(s) from %s",
            employer_id, len(result.slots), result.requested, result.days_searched, preferred_date,
        )
    return result
