"""
Interview conflict detection.

A proposed window conflicts with every *scheduled* interview of the same
employer whose real window touches the proposed window padded by the buffer
(15 minutes by default) on both sides.

All windows are half-open, [start, end). An interview that ends exactly where
the padded window begins does not touch it, so a gap of exactly the buffer is
allowed. An inclusive comparison of start and end times would report that gap
as a conflict, and the slot suggester would then offer slots that this check
rejects.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..config import DEFAULT_INTERVIEW_MINUTES, INTERVIEW_BUFFER_MINUTES, MAX_INTERVIEW_MINUTES
from ..models.interview import Interview
from .intervals import buffered, interview_window, window, windows_overlap

logger = logging.getLogger(__name__)

OVERLAPPING = "overlapping"
BACK_TO_BACK = "back_to_back"


@dataclass
class ConflictCheck:
    has_conflict: bool
    conflicts: list[Interview] = field(default_factory=list)
    conflict_type: str | None = None  # overlapping | back_to_back

    @property
    def conflict_ids(self) -> list[int]:
        return [int(c.id) for c in self.conflicts]


def scheduled_interviews_near(
    db: Session,
    *,
    employer_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[Interview]:
    """
    Scheduled interviews for the employer that could touch [range_start, range_end).

    The SQL filter only bounds on start time (duration lives in its own column),
    so the lower bound reaches back by the longest allowed interview. Callers
    do the exact window test.
    """
    lookback = range_start - timedelta(minutes=MAX_INTERVIEW_MINUTES)
    return (
        db.query(Interview)
        .filter(
            Interview.employer_id == int(employer_id),
            Interview.status == "scheduled",
            Interview.scheduled_at > lookback,
            Interview.scheduled_at < range_end,
        )
        .order_by(Interview.scheduled_at.asc(), Interview.id.asc())
        .all()
    )


def classify(start: datetime, end: datetime, conflicts: list[Interview]) -> str | None:
    if not conflicts:
        return None
    for c in conflicts:
        c_start, c_end = interview_window(c)
        if windows_overlap(start, end, c_start, c_end):
            return OVERLAPPING
    return BACK_TO_BACK


def check_conflicts(
    db: Session,
    employer_id: int,
    scheduled_at: datetime,
    duration: int = DEFAULT_INTERVIEW_MINUTES,
    exclude_interview_id: int | None = None,
    *,
    buffer_minutes: int = INTERVIEW_BUFFER_MINUTES,
) -> ConflictCheck:
    """Read-only: never writes, never logs to the conflict table."""
    start, end = window(scheduled_at, duration or DEFAULT_INTERVIEW_MINUTES)
    buffer_start, buffer_end = buffered(start, end, buffer_minutes)

    candidates = scheduled_interviews_near(
        db,
        employer_id=employer_id,
        range_start=buffer_start,
        range_end=buffer_end,
    )

    conflicts: list[Interview] = []
    for it in candidates:
        if exclude_interview_id is not None and int(it.id) == int(exclude_interview_id):
            continue
        it_start, it_end = interview_window(it)
        if windows_overlap(buffer_start, buffer_end, it_start, it_end):
            conflicts.append(it)

    if not conflicts:
        return ConflictCheck(has_conflict=False)

    conflict_type = classify(start, end, conflicts)
    logger.debug(
        "Employer %s: %d conflict(s) at %s (%s)",
        employer_id, len(conflicts), start.isoformat(), conflict_type,
    )
    return ConflictCheck(has_conflict=True, conflicts=conflicts, conflict_type=conflict_type)
