from datetime import datetime, timedelta, timezone

from interview_scheduler.services.intervals import (
    as_utc,
    buffered,
    collides_with_buffer,
    window,
    windows_overlap,
)


def _t(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 2, hour, minute, tzinfo=timezone.utc)


def test_as_utc_treats_naive_as_utc():
    naive = datetime(2030, 1, 2, 10, 0)
    assert as_utc(naive) == _t(10)


def test_as_utc_converts_offsets():
    plus_two = datetime(2030, 1, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two) == _t(10)
    assert as_utc(plus_two).tzinfo == timezone.utc


def test_window_and_buffer():
    start, end = window(_t(10), 45)
    assert end == _t(10, 45)
    assert buffered(start, end, 15) == (_t(9, 45), _t(11))


def test_half_open_windows_touching_do_not_overlap():
    assert not windows_overlap(_t(10), _t(11), _t(11), _t(12))
    assert windows_overlap(_t(10), _t(11, 1), _t(11), _t(12))


def test_exact_buffer_gap_is_clear():
    # 11:15 start after an 11:00 end leaves exactly the 15-minute buffer.
    assert not collides_with_buffer(_t(11, 15), _t(12), _t(10), _t(11), 15)
    assert collides_with_buffer(_t(11, 14), _t(12), _t(10), _t(11), 15)
