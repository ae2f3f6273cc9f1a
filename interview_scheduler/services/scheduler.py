"""
Interview Scheduling Service

schedule / reschedule / cancel / complete plus the read-side listings.

Conflicts are an expected outcome, not an error: they come back inside a
ScheduleResult so callers can offer alternative slots. Missing records and
invalid transitions raise AppError subclasses; database failures propagate.

Check-then-write is serialized per employer: an in-process lock keyed by
employer id, plus SELECT ... FOR UPDATE on the employer row inside the same
transaction (ignored by SQLite, a row lock on MySQL/PostgreSQL). Every read
that feeds the decision happens after both are held, in a transaction that
starts after the lock was granted.
"""
import logging
import threading
import weakref
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from ..config import (
    ALLOW_BACK_TO_BACK_OVERRIDE,
    DEFAULT_INTERVIEW_MINUTES,
    DEFAULT_SUGGESTION_COUNT,
    INTERVIEW_BUFFER_MINUTES,
    MAX_INTERVIEW_MINUTES,
    MIN_INTERVIEW_MINUTES,
    SLOT_SEARCH_MAX_DAYS,
)
from ..models.application import Application
from ..models.conflict_log import ConflictLog
from ..models.employer import Employer
from ..models.interview import INTERVIEW_TYPES, Interview
from ..utils.error_handlers import ConflictStateError, NotFoundError, ValidationError, get_error_message
from .clock import Clock, system_clock
from .conflicts import BACK_TO_BACK, ConflictCheck, check_conflicts
from .intervals import as_utc
from .slots import suggest_slots

logger = logging.getLogger(__name__)

# Entries disappear once no caller holds a reference to the lock.
_employer_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_employer_locks_guard = threading.Lock()


def _employer_lock(employer_id: int) -> threading.Lock:
    with _employer_locks_guard:
        lock = _employer_locks.get(int(employer_id))
        if lock is None:
            lock = threading.Lock()
            _employer_locks[int(employer_id)] = lock
        return lock


@dataclass
class ScheduleRequest:
    application_id: int
    employer_id: int
    candidate_id: int
    job_id: int
    scheduled_at: datetime
    duration: int = DEFAULT_INTERVIEW_MINUTES
    interview_type: str = "video"
    location: str | None = None
    notes: str | None = None


@dataclass
class ScheduleResult:
    success: bool
    interview: Interview | None = None
    conflicts: list[Interview] = field(default_factory=list)
    conflict_type: str | None = None
    message: str | None = None


@dataclass
class BulkScheduleResult:
    scheduled: list[Interview] = field(default_factory=list)
    # {"application_id", "candidate_id", "reason"} per application left unbooked
    failed: list[dict] = field(default_factory=list)


class InterviewScheduler:
    def __init__(
        self,
        db: Session,
        *,
        clock: Clock | None = None,
        buffer_minutes: int = INTERVIEW_BUFFER_MINUTES,
        allow_back_to_back_override: bool = ALLOW_BACK_TO_BACK_OVERRIDE,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.buffer_minutes = buffer_minutes
        self.allow_back_to_back_override = allow_back_to_back_override

    # ------------------------------------------------------------------ helpers

    def get_interview(self, interview_id: int) -> Interview:
        it = self.db.query(Interview).filter(Interview.id == int(interview_id)).first()
        if not it:
            raise NotFoundError(get_error_message("interview_not_found"))
        return it

    def _lock_employer_row(self, employer_id: int) -> Employer:
        # Drop any transaction opened before the in-process lock was granted;
        # under REPEATABLE READ its snapshot would hide the previous holder's insert.
        self.db.rollback()
        employer = (
            self.db.query(Employer)
            .filter(Employer.id == int(employer_id))
            .with_for_update()
            .first()
        )
        if not employer:
            raise NotFoundError(get_error_message("employer_not_found"))
        return employer

    def _validate_window(self, scheduled_at: datetime, duration: int) -> datetime:
        if scheduled_at is None:
            raise ValidationError(get_error_message("invalid_schedule"))
        start = as_utc(scheduled_at)
        if start < self.clock.now():
            raise ValidationError(get_error_message("schedule_in_past"))
        if duration is None or not (MIN_INTERVIEW_MINUTES <= int(duration) <= MAX_INTERVIEW_MINUTES):
            raise ValidationError(
                get_error_message("invalid_duration"),
                details={"min_minutes": MIN_INTERVIEW_MINUTES, "max_minutes": MAX_INTERVIEW_MINUTES},
            )
        return start

    def _validate_references(self, req: ScheduleRequest) -> None:
        a = self.db.query(Application).filter(Application.id == int(req.application_id)).first()
        if not a:
            raise NotFoundError(get_error_message("application_not_found"))
        job = a.job
        if (
            int(a.candidate_id) != int(req.candidate_id)
            or int(a.job_id) != int(req.job_id)
            or job is None
            or int(job.employer_id) != int(req.employer_id)
        ):
            raise ValidationError("Application does not match the given employer, candidate and job")

    def _log_conflict(self, employer_id: int, attempted_at: datetime, check: ConflictCheck) -> ConflictLog:
        entry = ConflictLog(
            employer_id=int(employer_id),
            conflict_date=attempted_at,
            conflicting_interview_ids=check.conflict_ids,
            conflict_type=check.conflict_type,
            resolved=False,
        )
        self.db.add(entry)
        return entry

    def _may_override(self, check: ConflictCheck, *, force: bool, allow_back_to_back: bool) -> bool:
        if force:
            return True
        return (
            allow_back_to_back
            and self.allow_back_to_back_override
            and check.conflict_type == BACK_TO_BACK
        )

    # --------------------------------------------------------------- mutations

    def schedule(
        self,
        req: ScheduleRequest,
        *,
        force: bool = False,
        allow_back_to_back: bool = False,
    ) -> ScheduleResult:
        duration = int(req.duration or DEFAULT_INTERVIEW_MINUTES)
        start = self._validate_window(req.scheduled_at, duration)
        interview_type = (req.interview_type or "video").strip().lower()
        if interview_type not in INTERVIEW_TYPES:
            raise ValidationError(f"Invalid interview type. Must be one of: {', '.join(INTERVIEW_TYPES)}")

        with _employer_lock(req.employer_id):
            try:
                self._lock_employer_row(req.employer_id)
                self._validate_references(req)
                check = check_conflicts(
                    self.db,
                    req.employer_id,
                    start,
                    duration,
                    buffer_minutes=self.buffer_minutes,
                )
                if check.has_conflict:
                    self._log_conflict(req.employer_id, start, check)
                    if not self._may_override(check, force=force, allow_back_to_back=allow_back_to_back):
                        self.db.commit()
                        logger.info(
                            "Employer %s: schedule at %s blocked by %s conflict with %s",
                            req.employer_id, start.isoformat(), check.conflict_type, check.conflict_ids,
                        )
                        return ScheduleResult(
                            success=False,
                            conflicts=check.conflicts,
                            conflict_type=check.conflict_type,
                            message=f"Scheduling conflict detected: {check.conflict_type}",
                        )
                    logger.warning(
                        "Employer %s: scheduling at %s over %s conflict with %s (force=%s)",
                        req.employer_id, start.isoformat(), check.conflict_type, check.conflict_ids, force,
                    )

                now = self.clock.now()
                it = Interview(
                    application_id=int(req.application_id),
                    employer_id=int(req.employer_id),
                    candidate_id=int(req.candidate_id),
                    job_id=int(req.job_id),
                    scheduled_at=start,
                    duration=duration,
                    interview_type=interview_type,
                    status="scheduled",
                    was_rescheduled=False,
                    location=(req.location or "").strip() or None,
                    notes=(req.notes or "").strip() or None,
                    updated_at=now,
                )
                self.db.add(it)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(it)
        message = "Interview scheduled successfully"
        if check.has_conflict:
            message = f"Interview scheduled despite {check.conflict_type} conflict"
        return ScheduleResult(
            success=True,
            interview=it,
            conflicts=check.conflicts,
            conflict_type=check.conflict_type,
            message=message,
        )

    def reschedule(
        self,
        interview_id: int,
        new_scheduled_at: datetime,
        new_duration: int | None = None,
        *,
        force: bool = False,
        allow_back_to_back: bool = False,
    ) -> ScheduleResult:
        it = self.get_interview(interview_id)
        if it.status != "scheduled":
            raise ConflictStateError(get_error_message("not_reschedulable"))

        duration = int(new_duration or it.duration or DEFAULT_INTERVIEW_MINUTES)
        start = self._validate_window(new_scheduled_at, duration)
        employer_id = int(it.employer_id)

        with _employer_lock(employer_id):
            try:
                self._lock_employer_row(employer_id)
                # Re-read under the lock; a concurrent cancel may have landed.
                it = self.get_interview(interview_id)
                if it.status != "scheduled":
                    raise ConflictStateError(get_error_message("not_reschedulable"))

                check = check_conflicts(
                    self.db,
                    employer_id,
                    start,
                    duration,
                    exclude_interview_id=int(it.id),
                    buffer_minutes=self.buffer_minutes,
                )
                if check.has_conflict:
                    self._log_conflict(employer_id, start, check)
                    if not self._may_override(check, force=force, allow_back_to_back=allow_back_to_back):
                        self.db.commit()
                        logger.info(
                            "Interview %s: reschedule to %s blocked by %s conflict with %s",
                            it.id, start.isoformat(), check.conflict_type, check.conflict_ids,
                        )
                        return ScheduleResult(
                            success=False,
                            interview=it,
                            conflicts=check.conflicts,
                            conflict_type=check.conflict_type,
                            message=f"Scheduling conflict detected: {check.conflict_type}",
                        )
                    logger.warning(
                        "Interview %s: rescheduling to %s over %s conflict with %s (force=%s)",
                        it.id, start.isoformat(), check.conflict_type, check.conflict_ids, force,
                    )

                it.scheduled_at = start
                it.duration = duration
                it.was_rescheduled = True
                it.updated_at = self.clock.now()
                self.db.add(it)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(it)
        message = "Interview rescheduled successfully"
        if check.has_conflict:
            message = f"Interview rescheduled despite {check.conflict_type} conflict"
        return ScheduleResult(
            success=True,
            interview=it,
            conflicts=check.conflicts,
            conflict_type=check.conflict_type,
            message=message,
        )

    def cancel(self, interview_id: int, reason: str | None = None) -> ScheduleResult:
        it = self.get_interview(interview_id)
        it.status = "cancelled"
        it.notes = (reason or "").strip() or "Cancelled"
        it.updated_at = self.clock.now()
        try:
            self.db.add(it)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(it)
        return ScheduleResult(success=True, interview=it, message="Interview cancelled successfully")

    def complete(self, interview_id: int, notes: str | None = None) -> ScheduleResult:
        it = self.get_interview(interview_id)
        if it.status != "scheduled":
            raise ConflictStateError(get_error_message("not_completable"))
        now = self.clock.now()
        it.status = "completed"
        it.completed_at = now
        it.updated_at = now
        if notes is not None:
            it.notes = notes.strip() or it.notes
        try:
            self.db.add(it)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(it)
        return ScheduleResult(success=True, interview=it, message="Interview marked completed")

    def bulk_schedule(
        self,
        employer_id: int,
        application_ids: list[int],
        *,
        preferred_date: date | None = None,
        duration: int = DEFAULT_INTERVIEW_MINUTES,
        interview_type: str = "video",
        location: str | None = None,
        max_days: int = SLOT_SEARCH_MAX_DAYS,
        slots_per_application: int = DEFAULT_SUGGESTION_COUNT,
    ) -> BulkScheduleResult:
        """
        Book each application into the earliest free slot from `preferred_date`.

        Applications are handled in the given order, so each booking narrows
        the slots left for the next. A slot lost to a concurrent booking is
        skipped in favour of the next suggestion. Per-application problems
        (unknown application, no slot) end up in `failed`; the rest still book.
        """
        if duration is None or not (MIN_INTERVIEW_MINUTES <= int(duration) <= MAX_INTERVIEW_MINUTES):
            raise ValidationError(get_error_message("invalid_duration"))
        if (interview_type or "").strip().lower() not in INTERVIEW_TYPES:
            raise ValidationError(f"Invalid interview type. Must be one of: {', '.join(INTERVIEW_TYPES)}")

        result = BulkScheduleResult()
        seen: set[int] = set()
        for application_id in application_ids:
            application_id = int(application_id)
            if application_id in seen:
                continue
            seen.add(application_id)

            a = self.db.query(Application).filter(Application.id == application_id).first()
            if not a or a.job is None or int(a.job.employer_id) != int(employer_id):
                result.failed.append(
                    {"application_id": application_id, "candidate_id": None,
                     "reason": get_error_message("application_not_found")}
                )
                continue
            candidate_id, job_id = int(a.candidate_id), int(a.job_id)

            suggestions = suggest_slots(
                self.db,
                employer_id,
                preferred_date=preferred_date,
                duration=duration,
                number_of_suggestions=slots_per_application,
                max_days=max_days,
                buffer_minutes=self.buffer_minutes,
                clock=self.clock,
            )
            if not suggestions.slots:
                result.failed.append(
                    {"application_id": application_id, "candidate_id": candidate_id,
                     "reason": "No available time slots found"}
                )
                continue

            booked = None
            for slot in suggestions.slots:
                attempt = self.schedule(
                    ScheduleRequest(
                        application_id=application_id,
                        employer_id=int(employer_id),
                        candidate_id=candidate_id,
                        job_id=job_id,
                        scheduled_at=slot.start,
                        duration=duration,
                        interview_type=interview_type,
                        location=location,
                    )
                )
                if attempt.success:
                    booked = attempt.interview
                    break
            if booked is None:
                result.failed.append(
                    {"application_id": application_id, "candidate_id": candidate_id,
                     "reason": "All available slots have conflicts"}
                )
                continue
            result.scheduled.append(booked)

        logger.info(
            "Employer %s: bulk scheduling booked %d, failed %d",
            employer_id, len(result.scheduled), len(result.failed),
        )
        return result

    # ------------------------------------------------------------------ queries

    def list_by_employer(
        self,
        employer_id: int,
        *,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        candidate_id: int | None = None,
    ) -> list[Interview]:
        q = self.db.query(Interview).filter(Interview.employer_id == int(employer_id))
        if status == "rescheduled":
            q = q.filter(Interview.was_rescheduled.is_(True))
        elif status:
            q = q.filter(Interview.status == status)
        if start is not None:
            q = q.filter(Interview.scheduled_at >= as_utc(start))
        if end is not None:
            q = q.filter(Interview.scheduled_at <= as_utc(end))
        if candidate_id is not None:
            q = q.filter(Interview.candidate_id == int(candidate_id))
        return q.order_by(Interview.scheduled_at.desc(), Interview.id.desc()).all()

    def list_by_candidate(self, candidate_id: int, *, employer_id: int | None = None) -> list[Interview]:
        q = self.db.query(Interview).filter(Interview.candidate_id == int(candidate_id))
        if employer_id is not None:
            q = q.filter(Interview.employer_id == int(employer_id))
        return q.order_by(Interview.scheduled_at.desc(), Interview.id.desc()).all()

    def calendar(self, employer_id: int, start: datetime, end: datetime) -> list[Interview]:
        start, end = as_utc(start), as_utc(end)
        if end < start:
            raise ValidationError("Calendar range end must not precede its start")
        return (
            self.db.query(Interview)
            .filter(
                Interview.employer_id == int(employer_id),
                Interview.status == "scheduled",
                Interview.scheduled_at >= start,
                Interview.scheduled_at <= end,
            )
            .order_by(Interview.scheduled_at.asc(), Interview.id.asc())
            .all()
        )

    def list_conflict_logs(self, employer_id: int, *, resolved: bool | None = None) -> list[ConflictLog]:
        q = self.db.query(ConflictLog).filter(ConflictLog.employer_id == int(employer_id))
        if resolved is not None:
            q = q.filter(ConflictLog.resolved.is_(bool(resolved)))
        return q.order_by(ConflictLog.id.desc()).all()

    def resolve_conflict_log(self, log_id: int, *, employer_id: int) -> ConflictLog:
        entry = (
            self.db.query(ConflictLog)
            .filter(ConflictLog.id == int(log_id), ConflictLog.employer_id == int(employer_id))
            .first()
        )
        if not entry:
            raise NotFoundError(get_error_message("conflict_log_not_found"))
        if not entry.resolved:
            entry.resolved = True
            entry.resolved_at = self.clock.now()
            try:
                self.db.add(entry)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(entry)
        return entry
