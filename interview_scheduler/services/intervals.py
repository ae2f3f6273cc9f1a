"""
Interval arithmetic shared by the conflict detector and the slot suggester.

All windows are half-open [start, end): an interview ending at 11:00 and
one starting at 11:00 touch but do not overlap.
"""
from datetime import datetime, timedelta, timezone


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def window(start: datetime, duration_minutes: int) -> tuple[datetime, datetime]:
    start = as_utc(start)
    return start, start + timedelta(minutes=int(duration_minutes))


def interview_window(interview) -> tuple[datetime, datetime]:  # noqa: ANN001
    return window(interview.scheduled_at, interview.duration or 0)


def buffered(start: datetime, end: datetime, buffer_minutes: int) -> tuple[datetime, datetime]:
    pad = timedelta(minutes=int(buffer_minutes))
    return start - pad, end + pad


def windows_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def collides_with_buffer(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime,
    buffer_minutes: int,
) -> bool:
    """True when [start, end) padded by the buffer on both sides touches the other window."""
    b_start, b_end = buffered(start, end, buffer_minutes)
    return windows_overlap(b_start, b_end, other_start, other_end)
