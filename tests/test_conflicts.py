from datetime import datetime, timedelta, timezone

import pytest

from interview_scheduler.services.conflicts import BACK_TO_BACK, OVERLAPPING, check_conflicts


def _at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


def test_ten_minute_gap_is_back_to_back(db_session, make_employer, make_application, book):
    employer = make_employer()
    existing = book(make_application(employer), _at(10), 60)

    check = check_conflicts(db_session, employer.id, _at(11, 10), 50)
    assert check.has_conflict is True
    assert check.conflict_type == BACK_TO_BACK
    assert check.conflict_ids == [existing.id]


def test_twenty_minute_gap_is_clear(db_session, make_employer, make_application, book):
    employer = make_employer()
    book(make_application(employer), _at(10), 60)

    check = check_conflicts(db_session, employer.id, _at(11, 20), 40)
    assert check.has_conflict is False
    assert check.conflicts == []
    assert check.conflict_type is None


def test_gap_before_existing_interview(db_session, make_employer, make_application, book):
    employer = make_employer()
    book(make_application(employer), _at(10), 60)

    # Ends 09:50, ten minutes before the existing start.
    assert check_conflicts(db_session, employer.id, _at(9), 50).conflict_type == BACK_TO_BACK
    # Ends 09:45, exactly the buffer.
    assert check_conflicts(db_session, employer.id, _at(8, 45), 60).has_conflict is False


def test_overlap_wins_over_back_to_back(db_session, make_employer, make_application, book):
    employer = make_employer()
    near = book(make_application(employer), _at(9), 60)
    overlapping = book(make_application(employer), _at(11), 60)

    check = check_conflicts(db_session, employer.id, _at(10, 5), 60)
    assert check.conflict_type == OVERLAPPING
    assert check.conflict_ids == [near.id, overlapping.id]


def test_excluded_interview_is_ignored(db_session, make_employer, make_application, book):
    employer = make_employer()
    it = book(make_application(employer), _at(10), 60)

    assert check_conflicts(db_session, employer.id, _at(10, 30), 60).has_conflict is True
    check = check_conflicts(db_session, employer.id, _at(10, 30), 60, exclude_interview_id=it.id)
    assert check.has_conflict is False


def test_only_scheduled_interviews_count(db_session, make_employer, make_application, book):
    employer = make_employer()
    book(make_application(employer), _at(10), 60, status="cancelled")
    book(make_application(employer), _at(10), 60, status="completed")

    assert check_conflicts(db_session, employer.id, _at(10), 60).has_conflict is False


def test_other_employers_do_not_conflict(db_session, make_employer, make_application, book):
    mine = make_employer("Mine")
    theirs = make_employer("Theirs")
    book(make_application(theirs), _at(10), 60)

    assert check_conflicts(db_session, mine.id, _at(10), 60).has_conflict is False


def test_long_interview_starting_earlier_is_found(db_session, make_employer, make_application, book):
    employer = make_employer()
    marathon = book(make_application(employer), _at(8), 240)  # until 12:00

    check = check_conflicts(db_session, employer.id, _at(11), 30)
    assert check.conflict_type == OVERLAPPING
    assert check.conflict_ids == [marathon.id]


def test_check_is_read_only(db_session, make_employer, make_application, book):
    from interview_scheduler.models.conflict_log import ConflictLog

    employer = make_employer()
    book(make_application(employer), _at(10), 60)
    check_conflicts(db_session, employer.id, _at(10), 60)

    assert db_session.query(ConflictLog).count() == 0


GAP_CASES = [(-1, OVERLAPPING), (0, BACK_TO_BACK), (14, BACK_TO_BACK), (15, None), (16, None)]


@pytest.mark.parametrize("gap, expected", GAP_CASES)
def test_gap_after_existing_interview(db_session, make_employer, make_application, book, gap, expected):
    employer = make_employer()
    book(make_application(employer), _at(10), 60)

    check = check_conflicts(db_session, employer.id, _at(11) + timedelta(minutes=gap), 30)
    assert check.conflict_type == expected
    assert check.has_conflict is (expected is not None)


@pytest.mark.parametrize("gap, expected", GAP_CASES)
def test_gap_before_existing_interview_sweep(db_session, make_employer, make_application, book, gap, expected):
    employer = make_employer()
    book(make_application(employer), _at(10), 60)

    ends = _at(10) - timedelta(minutes=gap)
    check = check_conflicts(db_session, employer.id, ends - timedelta(minutes=30), 30)
    assert check.conflict_type == expected
    assert check.has_conflict is (expected is not None)
