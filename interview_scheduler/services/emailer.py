import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "1") -> bool:
    v = (os.getenv(name, default) or default).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _smtp_settings() -> dict:
    """
    Read SMTP settings at send time.

    Env vars:
      SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM, SMTP_TLS
    """
    user = (os.getenv("SMTP_USER") or "").strip()
    settings = {
        "host": (os.getenv("SMTP_HOST") or "").strip(),
        "port": int((os.getenv("SMTP_PORT") or "587").strip()),
        "user": user,
        "password": (os.getenv("SMTP_PASS") or "").strip(),
        "mail_from": (os.getenv("SMTP_FROM") or user).strip(),
        "use_tls": _env_bool("SMTP_TLS", "1"),
    }
    if not settings["host"] or not settings["user"] or not settings["password"] or not settings["mail_from"]:
        raise RuntimeError("SMTP is not configured (missing SMTP_HOST/SMTP_USER/SMTP_PASS/SMTP_FROM).")
    return settings


def _deliver(msg: EmailMessage) -> None:
    s = _smtp_settings()
    msg["From"] = s["mail_from"]
    logger.debug("Connecting to %s:%s (TLS=%s)", s["host"], s["port"], s["use_tls"])
    with smtplib.SMTP(s["host"], s["port"], timeout=15) as smtp:
        smtp.ehlo()
        if s["use_tls"]:
            smtp.starttls()
            smtp.ehlo()
        smtp.login(s["user"], s["password"])
        smtp.send_message(msg)
    logger.info("Email sent to %s: %s", msg["To"], msg["Subject"])


def send_interview_scheduled_email(
    *,
    to_email: str,
    candidate_name: str | None,
    company_name: str | None,
    job_title: str | None,
    scheduled_at_text: str,
    duration_minutes: int,
    interview_type: str | None,
    location: str | None,
    notes: str | None = None,
    ics: str | None = None,
) -> None:
    """Invite the candidate; the .ics attachment lets mail clients add it to a calendar."""
    cand = (candidate_name or "Candidate").strip()
    company = (company_name or "our team").strip()
    jt = (job_title or "the role").strip()
    kind = (interview_type or "video").strip()

    lines: list[str] = []
    lines.append(f"Hi {cand},")
    lines.append("")
    lines.append(f"{company} has scheduled a {kind} interview with you for {jt}.")
    lines.append("")
    lines.append(f"When: {scheduled_at_text} (UTC)")
    lines.append(f"Duration: {duration_minutes} minutes")
    lines.append(f"Location: {location}" if location else "Location: TBD")
    if notes:
        lines.append("")
        lines.append(f"Notes: {notes}")
    lines.append("")
    lines.append("Please add this to your calendar and make sure you're available at the scheduled time.")
    lines.append("")
    lines.append("Best regards,")
    lines.append(company)

    msg = EmailMessage()
    msg["Subject"] = f"Interview scheduled: {jt}"
    msg["To"] = to_email
    msg.set_content("\n".join(lines))
    if ics:
        msg.add_attachment(
            ics.encode("utf-8"),
            maintype="text",
            subtype="calendar",
            filename="interview.ics",
        )
    _deliver(msg)


def send_employer_interview_notice(
    *,
    to_email: str,
    company_name: str | None,
    candidate_name: str | None,
    job_title: str | None,
    scheduled_at_text: str,
    location: str | None,
) -> None:
    lines = [
        f"Hello {(company_name or 'there').strip()},",
        "",
        "An interview has been scheduled with a candidate.",
        "",
        f"Candidate: {(candidate_name or 'Candidate').strip()}",
        f"Position: {(job_title or 'N/A').strip()}",
        f"Date & Time: {scheduled_at_text} (UTC)",
    ]
    if location:
        lines.append(f"Location: {location}")

    msg = EmailMessage()
    msg["Subject"] = f"Interview scheduled with {(candidate_name or 'a candidate').strip()}"
    msg["To"] = to_email
    msg.set_content("\n".join(lines))
    _deliver(msg)
