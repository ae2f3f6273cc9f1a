"""
Validation utilities for request payloads.
"""
import re
from typing import Any

from fastapi import HTTPException

from ..models.interview import INTERVIEW_STATUSES, INTERVIEW_TYPES

_EMAIL_RE = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def validate_email(email: str) -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise HTTPException(status_code=400, detail="Email is required")

    email = email.strip().lower()
    if len(email) > 255:
        raise HTTPException(status_code=400, detail="Email too long (max 255 characters)")

    if not re.match(_EMAIL_RE, email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    return email


def validate_password(password: str) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise HTTPException(status_code=400, detail="Password is required")

    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    if len(password) > 128:
        raise HTTPException(status_code=400, detail="Password too long (max 128 characters)")


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
) -> str | None:
    """Validate a string field; blank optional values collapse to None."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a string")

    value = value.strip()
    if not value:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} cannot be empty")
        return None

    if len(value) < min_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_length} characters"
        )

    if len(value) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_length} characters"
        )

    return value


def validate_role(role: str) -> str:
    """Validate user role."""
    if not role or not isinstance(role, str):
        raise HTTPException(status_code=400, detail="Role is required")

    role = role.strip().lower()
    valid_roles = ("employer", "candidate")

    if role not in valid_roles:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role. Must be one of: {', '.join(valid_roles)}"
        )

    return role


def validate_interview_type(value: str | None) -> str:
    if not value:
        return "video"

    value = value.strip().lower()
    if value not in INTERVIEW_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid interview type. Must be one of: {', '.join(INTERVIEW_TYPES)}"
        )
    return value


def validate_status_filter(value: str | None) -> str | None:
    """
    Validate a list filter. Besides the stored statuses, "rescheduled" is
    accepted and means "was moved at least once".
    """
    if not value:
        return None

    value = value.strip().lower()
    allowed = (*INTERVIEW_STATUSES, "rescheduled")
    if value not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(allowed)}"
        )
    return value
