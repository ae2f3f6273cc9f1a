from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..services.clock import Clock, system_clock
from .error_handlers import UnauthorizedError, get_error_message
from .security import decode_access_token

_bearer = HTTPBearer(auto_error=False)


def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> dict:
    """
    Decode the bearer token into the claims dict used by routers:
    {"sub": "<user id>", "role": ..., "email": ..., "employer_id"?: int, "candidate_id"?: int}
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(get_error_message("unauthorized"))

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise UnauthorizedError(get_error_message("session_expired"))
    return payload


def get_clock() -> Clock:
    """Overridable in tests via app.dependency_overrides."""
    return system_clock
