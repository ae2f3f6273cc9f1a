from datetime import datetime, timezone

import httpx

from interview_scheduler import config
from interview_scheduler.services import calendar_sync
from interview_scheduler.services.calendar_sync import build_ics, interview_payload, push_event, sync_interview


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 2, hour, minute, tzinfo=timezone.utc)


def _interview(make_employer, make_application, book, **fields):
    it = book(make_application(make_employer()), _at(10), 45)
    for k, v in fields.items():
        setattr(it, k, v)
    return it


def test_ics_event_fields(make_employer, make_application, book):
    it = _interview(make_employer, make_application, book, location="HQ, Room 4", notes="Bring laptop")
    ics = build_ics(it, stamp=_at(8))

    lines = ics.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "METHOD:REQUEST" in lines
    assert f"UID:interview-{it.id}@interview-scheduler" in lines
    assert "DTSTAMP:20300102T080000Z" in lines
    assert "DTSTART:20300102T100000Z" in lines
    assert "DTEND:20300102T104500Z" in lines
    assert "SUMMARY:Video interview" in lines
    assert "LOCATION:HQ\\, Room 4" in lines
    assert "DESCRIPTION:Bring laptop" in lines
    assert "STATUS:CONFIRMED" in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_ics_cancelled(make_employer, make_application, book):
    it = _interview(make_employer, make_application, book, status="cancelled")
    ics = build_ics(it)
    assert "METHOD:CANCEL" in ics
    assert "STATUS:CANCELLED" in ics


def test_payload(make_employer, make_application, book):
    it = _interview(make_employer, make_application, book)
    payload = interview_payload(it)
    assert payload["id"] == it.id
    assert payload["start"] == "2030-01-02T10:00:00+00:00"
    assert payload["end"] == "2030-01-02T10:45:00+00:00"
    assert payload["status"] == "scheduled"


def test_push_disabled_without_url(monkeypatch):
    monkeypatch.setattr(config, "CALENDAR_SYNC_URL", "")
    assert push_event(action="upsert", payload={"id": 1}, ics="") is False


class _FakeClient:
    """Stands in for httpx.Client; records posts and replies with a fixed status."""

    calls: list = []

    def __init__(self, status_code: int = 200, error: Exception | None = None, **kwargs):
        self.status_code = status_code
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def post(self, url, json=None, headers=None):
        if self.error is not None:
            raise self.error
        _FakeClient.calls.append({"url": url, "json": json, "headers": headers})
        return httpx.Response(self.status_code)


def _patch_client(monkeypatch, **client_kwargs):
    _FakeClient.calls = []
    monkeypatch.setattr(config, "CALENDAR_SYNC_URL", "https://calendar.example/hook")
    monkeypatch.setattr(config, "CALENDAR_SYNC_TOKEN", "s3cret")
    monkeypatch.setattr(calendar_sync.httpx, "Client", lambda **kw: _FakeClient(**client_kwargs))


def test_sync_posts_payload_and_ics(monkeypatch, make_employer, make_application, book):
    _patch_client(monkeypatch)
    it = _interview(make_employer, make_application, book)

    assert sync_interview(it) is True
    [call] = _FakeClient.calls
    assert call["url"] == "https://calendar.example/hook"
    assert call["headers"]["Authorization"] == "Bearer s3cret"
    assert call["json"]["action"] == "upsert"
    assert call["json"]["interview"]["id"] == it.id
    assert "BEGIN:VEVENT" in call["json"]["ics"]


def test_sync_http_error_status_is_reported(monkeypatch):
    _patch_client(monkeypatch, status_code=502)
    assert push_event(action="upsert", payload={"id": 7}, ics="") is False


def test_sync_transport_error_never_raises(monkeypatch):
    _patch_client(monkeypatch, error=httpx.ConnectError("refused"))
    assert push_event(action="cancel", payload={"id": 7}, ics="") is False
