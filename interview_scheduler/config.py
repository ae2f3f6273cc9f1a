import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so edits to .env take effect on process reload.
#
# For automated tests (SQLite), set DISABLE_DOTENV=1 so a developer .env cannot
# override the test DATABASE_URL.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or default).strip() in {"1", "true", "True", "yes", "YES", "on"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the service can start out-of-the-box.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# Statement-level visibility for the conflict check: after the per-employer
# lock is granted, reads must see interviews the previous holder committed.
# SQLite ignores this setting.
DB_ISOLATION_LEVEL = (os.getenv("DB_ISOLATION_LEVEL") or "READ COMMITTED").strip()

# Auth / JWT
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)) or "10080")

# -------------------- Scheduling --------------------
INTERVIEW_BUFFER_MINUTES = int(os.getenv("INTERVIEW_BUFFER_MINUTES", "15") or "15")
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30") or "30")
DEFAULT_INTERVIEW_MINUTES = int(os.getenv("DEFAULT_INTERVIEW_MINUTES", "60") or "60")
MIN_INTERVIEW_MINUTES = 5
MAX_INTERVIEW_MINUTES = int(os.getenv("MAX_INTERVIEW_MINUTES", "480") or "480")

WORKING_HOURS_START = int(os.getenv("WORKING_HOURS_START", "9") or "9")
WORKING_HOURS_END = int(os.getenv("WORKING_HOURS_END", "17") or "17")
# Working hours and "calendar day" boundaries are interpreted in this zone.
# Stored timestamps are always UTC.
SCHEDULING_TIMEZONE = (os.getenv("SCHEDULING_TIMEZONE") or "UTC").strip() or "UTC"

# Upper bound on how many days the slot suggester spills over into.
SLOT_SEARCH_MAX_DAYS = int(os.getenv("SLOT_SEARCH_MAX_DAYS", "14") or "14")
DEFAULT_SUGGESTION_COUNT = 5

# Back-to-back (buffer-only) conflicts may be overridden with allow_back_to_back
# instead of a full force flag.
ALLOW_BACK_TO_BACK_OVERRIDE = _env_bool("ALLOW_BACK_TO_BACK_OVERRIDE", "1")

# -------------------- Notifications --------------------
# SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM, SMTP_TLS are read by
# services/emailer.py at send time so tests can toggle them per case.
NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", "1")

# -------------------- Calendar sync --------------------
# Empty URL disables sync entirely.
CALENDAR_SYNC_URL = (os.getenv("CALENDAR_SYNC_URL") or "").strip()
CALENDAR_SYNC_TOKEN = (os.getenv("CALENDAR_SYNC_TOKEN") or "").strip()
CALENDAR_SYNC_TIMEOUT_S = float(os.getenv("CALENDAR_SYNC_TIMEOUT_S", "5") or "5")
CALENDAR_PRODUCT_ID = "-//Interview Scheduler//EN"
