"""
Best-effort calendar sync.

Renders interviews as iCalendar VEVENTs and pushes them to an external
calendar bridge (CALENDAR_SYNC_URL) over HTTP. Sync never raises: a failed
push is logged and the booking stands.
"""
import logging
from datetime import datetime, timezone

import httpx

from .. import config
from .intervals import interview_window

logger = logging.getLogger(__name__)


def _ics_time(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(value: str) -> str:
    return (
        (value or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def build_ics(
    interview,  # noqa: ANN001
    *,
    summary: str | None = None,
    description: str | None = None,
    stamp: datetime | None = None,
) -> str:
    start, end = interview_window(interview)
    status = "CANCELLED" if interview.status == "cancelled" else "CONFIRMED"
    stamp = stamp or datetime.now(timezone.utc)
    kind = (interview.interview_type or "video").capitalize()
    summary = summary or f"{kind} interview"
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{config.CALENDAR_PRODUCT_ID}",
        "METHOD:CANCEL" if status == "CANCELLED" else "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:interview-{interview.id}@interview-scheduler",
        f"DTSTAMP:{_ics_time(stamp)}",
        f"DTSTART:{_ics_time(start)}",
        f"DTEND:{_ics_time(end)}",
        f"SUMMARY:{_ics_escape(summary)}",
    ]
    if interview.location:
        lines.append(f"LOCATION:{_ics_escape(interview.location)}")
    if description or interview.notes:
        lines.append(f"DESCRIPTION:{_ics_escape(description or interview.notes)}")
    lines.append(f"STATUS:{status}")
    lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def interview_payload(interview) -> dict:  # noqa: ANN001
    start, end = interview_window(interview)
    return {
        "id": int(interview.id),
        "employer_id": int(interview.employer_id),
        "candidate_id": int(interview.candidate_id),
        "job_id": int(interview.job_id),
        "start": start.isoformat(),
        "end": end.isoformat(),
        "interview_type": interview.interview_type,
        "status": interview.status,
        "location": interview.location,
    }


def push_event(*, action: str, payload: dict, ics: str) -> bool:
    """
    Push one event to the calendar bridge. Returns False on any failure.

    Takes plain data so it can run as a background task after the request
    session is closed.
    """
    url = config.CALENDAR_SYNC_URL
    if not url:
        return False

    headers = {"Content-Type": "application/json"}
    if config.CALENDAR_SYNC_TOKEN:
        headers["Authorization"] = f"Bearer {config.CALENDAR_SYNC_TOKEN}"

    body = {"action": action, "interview": payload, "ics": ics}
    interview_id = payload.get("id")
    try:
        with httpx.Client(timeout=config.CALENDAR_SYNC_TIMEOUT_S) as client:
            r = client.post(url, json=body, headers=headers)
        if r.status_code >= 400:
            logger.warning("Calendar sync for interview %s failed: HTTP %s", interview_id, r.status_code)
            return False
    except httpx.HTTPError as e:
        logger.warning("Calendar sync for interview %s failed: %s", interview_id, e)
        return False
    return True


def sync_interview(interview, *, action: str = "upsert") -> bool:  # noqa: ANN001
    return push_event(action=action, payload=interview_payload(interview), ics=build_ics(interview))
