from fastapi import Depends

from .dependencies import get_current_user
from .error_handlers import ForbiddenError, get_error_message


def _role_required(required_role: str):
    def check_role(user=Depends(get_current_user)):
        if user.get("role") != required_role:
            raise ForbiddenError(f"{required_role.capitalize()} access only")
        return user
    return check_role


employer_only = _role_required("employer")


def ensure_employer_access(user: dict, employer_id: int) -> None:
    if user.get("role") != "employer" or int(user.get("employer_id") or 0) != int(employer_id):
        raise ForbiddenError(get_error_message("forbidden"))


def ensure_candidate_access(user: dict, candidate_id: int) -> None:
    if user.get("role") != "candidate" or int(user.get("candidate_id") or 0) != int(candidate_id):
        raise ForbiddenError(get_error_message("forbidden"))
