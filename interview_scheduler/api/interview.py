import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

try:
    from zoneinfo import ZoneInfo  # py3.9+
except Exception:  # pragma: no cover
    ZoneInfo = None  # type: ignore

from .. import config
from ..database import get_db
from ..models.conflict_log import ConflictLog
from ..models.interview import Interview
from ..services.calendar_sync import build_ics, interview_payload, push_event
from ..services.clock import Clock
from ..services.conflicts import check_conflicts
from ..services.emailer import send_employer_interview_notice, send_interview_scheduled_email
from ..services.intervals import as_utc, interview_window
from ..services.scheduler import InterviewScheduler, ScheduleRequest, ScheduleResult
from ..services.slots import local_date, suggest_slots
from ..utils.dependencies import get_clock, get_current_user
from ..utils.error_handlers import ForbiddenError, get_error_message
from ..utils.roles import employer_only, ensure_candidate_access, ensure_employer_access
from ..utils.validation import validate_interview_type, validate_status_filter, validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interviews", tags=["Interviews"])

CONFLICT_SUGGESTIONS = 5


def _iso(dt: datetime | None) -> str | None:
    return as_utc(dt).isoformat() if isinstance(dt, datetime) else None


def _parse_scheduled_at(*, scheduled_at: str, tz: str | None) -> datetime:
    raw = (scheduled_at or "").strip()
    if not raw:
        raise ValueError("scheduled_at is required")
    # Allow ISO with timezone, or naive ISO + timezone string.
    dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        if tz and ZoneInfo is not None:
            try:
                dt = dt.replace(tzinfo=ZoneInfo(tz))
            except Exception:
                # On Windows, IANA tz database may be missing; fall back safely.
                dt = dt.replace(tzinfo=timezone.utc)
        else:
            dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _scheduled_at_or_400(scheduled_at: str, tz: str | None) -> datetime:
    try:
        return _parse_scheduled_at(scheduled_at=scheduled_at, tz=tz)
    except ValueError:
        raise HTTPException(status_code=400, detail=get_error_message("invalid_schedule"))


def _interview_dict(it: Interview) -> dict:
    start, end = interview_window(it)
    return {
        "id": int(it.id),
        "application_id": int(it.application_id),
        "employer_id": int(it.employer_id),
        "candidate_id": int(it.candidate_id),
        "job_id": int(it.job_id),
        "scheduled_at": start.isoformat(),
        "ends_at": end.isoformat(),
        "duration": int(it.duration),
        "interview_type": it.interview_type,
        "status": it.status,
        "was_rescheduled": bool(it.was_rescheduled),
        "location": it.location,
        "notes": it.notes,
        "completed_at": _iso(it.completed_at),
        "created_at": _iso(it.created_at),
        "updated_at": _iso(it.updated_at),
    }


def _conflict_dict(it: Interview) -> dict:
    start, end = interview_window(it)
    return {
        "id": int(it.id),
        "candidate_id": int(it.candidate_id),
        "job_id": int(it.job_id),
        "scheduled_at": start.isoformat(),
        "ends_at": end.isoformat(),
        "duration": int(it.duration),
        "interview_type": it.interview_type,
    }


def _conflict_log_dict(entry: ConflictLog) -> dict:
    return {
        "id": int(entry.id),
        "employer_id": int(entry.employer_id),
        "conflict_date": _iso(entry.conflict_date),
        "conflicting_interview_ids": list(entry.conflicting_interview_ids or []),
        "conflict_type": entry.conflict_type,
        "resolved": bool(entry.resolved),
        "resolved_at": _iso(entry.resolved_at),
        "created_at": _iso(entry.created_at),
    }


def _conflict_response(
    db: Session,
    result: ScheduleResult,
    *,
    employer_id: int,
    attempted_at: datetime,
    duration: int,
    clock: Clock,
    exclude_interview_id: int | None = None,
) -> dict:
    """Blocked booking: report the conflicts plus free slots on the same day."""
    suggestions = suggest_slots(
        db,
        employer_id,
        preferred_date=local_date(attempted_at),
        duration=duration,
        number_of_suggestions=CONFLICT_SUGGESTIONS,
        max_days=1,
        clock=clock,
        exclude_interview_id=exclude_interview_id,
    )
    return {
        "success": False,
        "message": result.message,
        "conflict_type": result.conflict_type,
        "conflicts": [_conflict_dict(c) for c in result.conflicts],
        "suggestions": [s.as_dict() for s in suggestions.slots],
    }


def _load_interview(scheduler: InterviewScheduler, interview_id: int, user: dict) -> Interview:
    it = scheduler.get_interview(interview_id)
    ensure_employer_access(user, int(it.employer_id))
    return it


# -------------------- side effects (run after the response) --------------------

def _safe_email(sender, **kwargs) -> None:  # noqa: ANN001
    # Never fail scheduling due to email issues.
    try:
        sender(**kwargs)
    except Exception as e:
        logger.warning("Email to %s failed (non-blocking): %s: %s", kwargs.get("to_email"), type(e).__name__, e)


def _queue_notifications(background_tasks: BackgroundTasks, it: Interview) -> None:
    """
    Queue candidate invite and employer notice. Everything the tasks need is
    read here, while the request session is still open.
    """
    if not config.NOTIFICATIONS_ENABLED:
        return

    candidate = it.candidate
    employer = it.employer
    job = it.job
    scheduled_text = as_utc(it.scheduled_at).strftime("%Y-%m-%d %H:%M")
    company = employer.company_name if employer else None
    candidate_name = candidate.full_name if candidate else None
    job_title = job.title if job else None

    if candidate and candidate.email:
        background_tasks.add_task(
            _safe_email,
            send_interview_scheduled_email,
            to_email=candidate.email,
            candidate_name=candidate_name,
            company_name=company,
            job_title=job_title,
            scheduled_at_text=scheduled_text,
            duration_minutes=int(it.duration),
            interview_type=it.interview_type,
            location=it.location,
            notes=it.notes,
            ics=build_ics(it),
        )
    if employer and employer.contact_email:
        background_tasks.add_task(
            _safe_email,
            send_employer_interview_notice,
            to_email=employer.contact_email,
            company_name=company,
            candidate_name=candidate_name,
            job_title=job_title,
            scheduled_at_text=scheduled_text,
            location=it.location,
        )


def _queue_calendar_sync(background_tasks: BackgroundTasks, it: Interview, *, action: str) -> None:
    if not config.CALENDAR_SYNC_URL:
        return
    background_tasks.add_task(push_event, action=action, payload=interview_payload(it), ics=build_ics(it))


# -------------------- conflict check / slot suggestions --------------------

class ConflictCheckIn(BaseModel):
    employer_id: int = Field(..., ge=1)
    scheduled_at: str = Field(..., min_length=6)
    timezone: str | None = None
    duration: int = Field(default=config.DEFAULT_INTERVIEW_MINUTES, ge=1, le=config.MAX_INTERVIEW_MINUTES)
    exclude_interview_id: int | None = None


@router.post("/conflicts/check")
def conflicts_check(
    body: ConflictCheckIn,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
):
    ensure_employer_access(user, body.employer_id)
    start = _scheduled_at_or_400(body.scheduled_at, body.timezone)
    check = check_conflicts(
        db,
        body.employer_id,
        start,
        body.duration,
        exclude_interview_id=body.exclude_interview_id,
    )
    return {
        "success": True,
        "has_conflict": check.has_conflict,
        "conflict_type": check.conflict_type,
        "conflicts": [_conflict_dict(c) for c in check.conflicts],
    }


class SlotSuggestIn(BaseModel):
    employer_id: int = Field(..., ge=1)
    preferred_date: date | None = None
    duration: int = Field(default=config.DEFAULT_INTERVIEW_MINUTES, ge=1, le=config.MAX_INTERVIEW_MINUTES)
    number_of_suggestions: int = Field(default=config.DEFAULT_SUGGESTION_COUNT, ge=1, le=50)
    working_hours_start: int = Field(default=config.WORKING_HOURS_START, ge=0, le=23)
    working_hours_end: int = Field(default=config.WORKING_HOURS_END, ge=1, le=24)
    max_days: int = Field(default=config.SLOT_SEARCH_MAX_DAYS, ge=1, le=90)


@router.post("/slots/suggest")
def slots_suggest(
    body: SlotSuggestIn,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    ensure_employer_access(user, body.employer_id)
    result = suggest_slots(
        db,
        body.employer_id,
        preferred_date=body.preferred_date,
        duration=body.duration,
        number_of_suggestions=body.number_of_suggestions,
        working_hours_start=body.working_hours_start,
        working_hours_end=body.working_hours_end,
        max_days=body.max_days,
        clock=clock,
    )
    return {
        "success": True,
        "slots": [s.as_dict() for s in result.slots],
        "requested": result.requested,
        "days_searched": result.days_searched,
        "exhausted": result.exhausted,
    }


# -------------------- lifecycle --------------------

class InterviewScheduleIn(BaseModel):
    application_id: int = Field(..., ge=1)
    employer_id: int = Field(..., ge=1)
    candidate_id: int = Field(..., ge=1)
    job_id: int = Field(..., ge=1)
    scheduled_at: str = Field(..., min_length=6)
    timezone: str | None = None
    duration: int | None = Field(default=None, ge=config.MIN_INTERVIEW_MINUTES, le=config.MAX_INTERVIEW_MINUTES)
    interview_type: str | None = None
    location: str | None = None
    notes: str | None = None
    force: bool = False
    allow_back_to_back: bool = False


@router.post("/schedule")
def schedule_interview(
    body: InterviewScheduleIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    """
    Book an interview for one of the employer's applications.

    A conflict is a normal outcome: HTTP 200 with success=false, the
    conflicting interviews and same-day alternatives.
    """
    ensure_employer_access(user, body.employer_id)
    scheduled_dt = _scheduled_at_or_400(body.scheduled_at, body.timezone)
    duration = int(body.duration or config.DEFAULT_INTERVIEW_MINUTES)

    req = ScheduleRequest(
        application_id=body.application_id,
        employer_id=body.employer_id,
        candidate_id=body.candidate_id,
        job_id=body.job_id,
        scheduled_at=scheduled_dt,
        duration=duration,
        interview_type=validate_interview_type(body.interview_type),
        location=validate_string_field(body.location, "Location", max_length=500, required=False),
        notes=validate_string_field(body.notes, "Notes", max_length=2000, required=False),
    )
    scheduler = InterviewScheduler(db, clock=clock)
    result = scheduler.schedule(req, force=body.force, allow_back_to_back=body.allow_back_to_back)
    if not result.success:
        return _conflict_response(
            db, result, employer_id=body.employer_id, attempted_at=scheduled_dt, duration=duration, clock=clock
        )

    it = result.interview
    _queue_notifications(background_tasks, it)
    _queue_calendar_sync(background_tasks, it, action="upsert")
    return {
        "success": True,
        "message": result.message,
        "conflict_type": result.conflict_type,
        "interview": _interview_dict(it),
    }


class BulkScheduleIn(BaseModel):
    employer_id: int = Field(..., ge=1)
    application_ids: list[int] = Field(..., min_length=1, max_length=50)
    preferred_date: date | None = None
    duration: int = Field(
        default=config.DEFAULT_INTERVIEW_MINUTES, ge=config.MIN_INTERVIEW_MINUTES, le=config.MAX_INTERVIEW_MINUTES
    )
    interview_type: str | None = None
    location: str | None = None
    max_days: int = Field(default=config.SLOT_SEARCH_MAX_DAYS, ge=1, le=90)


@router.post("/bulk-schedule")
def bulk_schedule_interviews(
    body: BulkScheduleIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    """Book several applications into the earliest free slots, one after another."""
    ensure_employer_access(user, body.employer_id)
    result = InterviewScheduler(db, clock=clock).bulk_schedule(
        body.employer_id,
        body.application_ids,
        preferred_date=body.preferred_date,
        duration=body.duration,
        interview_type=validate_interview_type(body.interview_type),
        location=validate_string_field(body.location, "Location", max_length=500, required=False),
        max_days=body.max_days,
    )
    for it in result.scheduled:
        _queue_notifications(background_tasks, it)
        _queue_calendar_sync(background_tasks, it, action="upsert")
    return {
        "success": True,
        "scheduled_count": len(result.scheduled),
        "failed_count": len(result.failed),
        "scheduled": [_interview_dict(it) for it in result.scheduled],
        "failed": result.failed,
    }


class InterviewRescheduleIn(BaseModel):
    scheduled_at: str = Field(..., min_length=6)
    timezone: str | None = None
    duration: int | None = Field(default=None, ge=config.MIN_INTERVIEW_MINUTES, le=config.MAX_INTERVIEW_MINUTES)
    force: bool = False
    allow_back_to_back: bool = False


@router.post("/{interview_id}/reschedule")
def reschedule_interview(
    interview_id: int,
    body: InterviewRescheduleIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    scheduler = InterviewScheduler(db, clock=clock)
    it = _load_interview(scheduler, interview_id, user)
    scheduled_dt = _scheduled_at_or_400(body.scheduled_at, body.timezone)

    result = scheduler.reschedule(
        interview_id,
        scheduled_dt,
        body.duration,
        force=body.force,
        allow_back_to_back=body.allow_back_to_back,
    )
    if not result.success:
        return _conflict_response(
            db,
            result,
            employer_id=int(it.employer_id),
            attempted_at=scheduled_dt,
            duration=int(body.duration or it.duration),
            clock=clock,
            exclude_interview_id=interview_id,
        )

    it = result.interview
    _queue_notifications(background_tasks, it)
    _queue_calendar_sync(background_tasks, it, action="upsert")
    return {
        "success": True,
        "message": result.message,
        "conflict_type": result.conflict_type,
        "interview": _interview_dict(it),
    }


class InterviewCancelIn(BaseModel):
    reason: str | None = None


@router.post("/{interview_id}/cancel")
def cancel_interview(
    interview_id: int,
    background_tasks: BackgroundTasks,
    body: InterviewCancelIn | None = None,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    scheduler = InterviewScheduler(db, clock=clock)
    _load_interview(scheduler, interview_id, user)
    reason = validate_string_field(body.reason if body else None, "Reason", max_length=2000, required=False)
    result = scheduler.cancel(interview_id, reason)
    _queue_calendar_sync(background_tasks, result.interview, action="cancel")
    return {"success": True, "message": result.message, "interview": _interview_dict(result.interview)}


class InterviewCompleteIn(BaseModel):
    notes: str | None = None


@router.post("/{interview_id}/complete")
def complete_interview(
    interview_id: int,
    body: InterviewCompleteIn | None = None,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    scheduler = InterviewScheduler(db, clock=clock)
    _load_interview(scheduler, interview_id, user)
    result = scheduler.complete(interview_id, body.notes if body else None)
    return {"success": True, "message": result.message, "interview": _interview_dict(result.interview)}


# -------------------- reads --------------------

@router.get("/employer/{employer_id}")
def employer_interviews(
    employer_id: int,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    candidate_id: int | None = None,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
):
    ensure_employer_access(user, employer_id)
    rows = InterviewScheduler(db).list_by_employer(
        employer_id,
        status=validate_status_filter(status),
        start=start,
        end=end,
        candidate_id=candidate_id,
    )
    return {"success": True, "interviews": [_interview_dict(it) for it in rows]}


@router.get("/employer/{employer_id}/calendar")
def employer_calendar(
    employer_id: int,
    start: datetime,
    end: datetime,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
):
    ensure_employer_access(user, employer_id)
    rows = InterviewScheduler(db).calendar(employer_id, start, end)
    return {
        "success": True,
        "start": _iso(start),
        "end": _iso(end),
        "interviews": [_interview_dict(it) for it in rows],
    }


@router.get("/employer/{employer_id}/conflicts")
def employer_conflict_logs(
    employer_id: int,
    resolved: bool | None = None,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
):
    ensure_employer_access(user, employer_id)
    rows = InterviewScheduler(db).list_conflict_logs(employer_id, resolved=resolved)
    return {"success": True, "conflicts": [_conflict_log_dict(e) for e in rows]}


@router.post("/conflicts/{log_id}/resolve")
def resolve_conflict_log(
    log_id: int,
    db: Session = Depends(get_db),
    user=Depends(employer_only),
    clock: Clock = Depends(get_clock),
):
    entry = InterviewScheduler(db, clock=clock).resolve_conflict_log(log_id, employer_id=int(user.get("employer_id") or 0))
    return {"success": True, "conflict": _conflict_log_dict(entry)}


@router.get("/candidate/{candidate_id}")
def candidate_interviews(
    candidate_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """
    A candidate sees all of their interviews; an employer sees only the
    interviews it booked with that candidate.
    """
    role = user.get("role")
    if role == "candidate":
        ensure_candidate_access(user, candidate_id)
        employer_id = None
    elif role == "employer" and user.get("employer_id"):
        employer_id = int(user["employer_id"])
    else:
        raise ForbiddenError(get_error_message("forbidden"))

    rows = InterviewScheduler(db).list_by_candidate(candidate_id, employer_id=employer_id)
    return {"success": True, "interviews": [_interview_dict(it) for it in rows]}


@router.get("/{interview_id}")
def interview_details(
    interview_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    it = InterviewScheduler(db).get_interview(interview_id)
    role = user.get("role")
    if role == "employer":
        ensure_employer_access(user, int(it.employer_id))
    else:
        ensure_candidate_access(user, int(it.candidate_id))

    job = it.job
    employer = it.employer
    candidate = it.candidate
    out = _interview_dict(it)
    out["job"] = {"id": int(job.id), "title": job.title} if job else None
    out["employer"] = {"id": int(employer.id), "company_name": employer.company_name} if employer else None
    out["candidate"] = (
        {"id": int(candidate.id), "full_name": candidate.full_name, "email": candidate.email} if candidate else None
    )
    return {"success": True, "interview": out}
