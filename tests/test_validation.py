"""
Validation and error handling helpers.
"""
import pytest
from fastapi import HTTPException

from interview_scheduler.utils.error_handlers import get_error_message, handle_database_error
from interview_scheduler.utils.validation import (
    validate_email,
    validate_interview_type,
    validate_password,
    validate_role,
    validate_status_filter,
    validate_string_field,
)


class TestEmailValidation:
    def test_valid_email(self):
        assert validate_email("test@example.com") == "test@example.com"
        assert validate_email("  USER@EXAMPLE.COM  ") == "user@example.com"

    def test_invalid_email_format(self):
        with pytest.raises(HTTPException) as exc:
            validate_email("invalid")
        assert exc.value.status_code == 400
        assert "Invalid email format" in str(exc.value.detail)

    def test_email_too_long(self):
        with pytest.raises(HTTPException) as exc:
            validate_email("a" * 250 + "@test.com")
        assert "too long" in str(exc.value.detail).lower()


class TestPasswordValidation:
    def test_valid_password(self):
        validate_password("123456")

    def test_short_password(self):
        with pytest.raises(HTTPException) as exc:
            validate_password("12345")
        assert exc.value.status_code == 400


class TestStringField:
    def test_blank_optional_is_none(self):
        assert validate_string_field("   ", "Location", required=False) is None
        assert validate_string_field(None, "Location", required=False) is None

    def test_required_missing(self):
        with pytest.raises(HTTPException):
            validate_string_field(None, "Name", required=True)

    def test_trimmed_and_bounded(self):
        assert validate_string_field("  Room 4 ", "Location") == "Room 4"
        with pytest.raises(HTTPException):
            validate_string_field("x" * 11, "Location", max_length=10)


class TestRoleAndInterviewFields:
    def test_roles(self):
        assert validate_role(" Employer ") == "employer"
        with pytest.raises(HTTPException):
            validate_role("admin")

    def test_interview_type_defaults_to_video(self):
        assert validate_interview_type(None) == "video"
        assert validate_interview_type("Onsite") == "onsite"
        with pytest.raises(HTTPException):
            validate_interview_type("carrier pigeon")

    def test_status_filter_accepts_rescheduled(self):
        assert validate_status_filter(None) is None
        assert validate_status_filter("rescheduled") == "rescheduled"
        assert validate_status_filter("Cancelled") == "cancelled"
        with pytest.raises(HTTPException):
            validate_status_filter("no_show")


class TestErrorHandlers:
    def test_unknown_key_falls_back_to_server_error(self):
        assert get_error_message("nope") == get_error_message("server_error")

    def test_database_error_mapping(self):
        assert handle_database_error(Exception("UNIQUE constraint failed"), "x").status_code == 409
        assert handle_database_error(Exception("FOREIGN KEY constraint failed"), "x").status_code == 400
        assert handle_database_error(Exception("connection refused"), "x").status_code == 503
        assert handle_database_error(Exception("boom"), "x").status_code == 500
