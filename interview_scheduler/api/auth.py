import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.candidate import Candidate
from ..models.employer import Employer
from ..models.user import User
from ..utils.dependencies import get_current_user
from ..utils.error_handlers import UnauthorizedError, get_error_message, handle_database_error
from ..utils.security import create_access_token, hash_password, verify_password
from ..utils.validation import validate_email, validate_password, validate_role, validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class SignupRequest(BaseModel):
    email: str
    password: str
    role: str  # employer / candidate
    name: str | None = None
    company_name: str | None = None  # employer accounts
    phone: str | None = None  # candidate accounts


class LoginRequest(BaseModel):
    email: str
    password: str
    role: str | None = None  # optional role gate (frontend-selected role)


def _profile_ids(db: Session, user: User) -> dict:
    """Resolve the employer / candidate profile owned by a user account."""
    if user.role == "employer":
        employer = db.query(Employer).filter(Employer.user_id == int(user.id)).first()
        return {"employer_id": int(employer.id)} if employer else {}
    if user.role == "candidate":
        candidate = db.query(Candidate).filter(Candidate.user_id == int(user.id)).first()
        return {"candidate_id": int(candidate.id)} if candidate else {}
    return {}


def _token_for(user: User, profile: dict) -> str:
    claims = {"sub": str(user.id), "role": user.role, "email": user.email}
    claims.update(profile)
    return create_access_token(claims)


def _user_dict(user: User, profile: dict) -> dict:
    out = {"id": int(user.id), "email": user.email, "name": user.name, "role": user.role}
    out.update(profile)
    return out


@router.post("/signup")
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    validate_password(payload.password)
    role = validate_role(payload.role)
    name = validate_string_field(payload.name, "Name", max_length=255, required=False)
    company_name = validate_string_field(payload.company_name, "Company name", max_length=255, required=False)
    phone = validate_string_field(payload.phone, "Phone", max_length=50, required=False)

    try:
        existing = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "checking existing user")
    if existing:
        raise HTTPException(status_code=400, detail=get_error_message("email_exists"))

    try:
        hashed = hash_password(payload.password)
    except ValueError:
        raise HTTPException(status_code=400, detail=get_error_message("weak_password"))

    # User and profile row are written in one transaction.
    user = User(name=name, email=email, password=hashed, role=role)
    try:
        db.add(user)
        db.flush()
        if role == "employer":
            db.add(
                Employer(
                    user_id=int(user.id),
                    company_name=company_name or name or email.split("@", 1)[0],
                    contact_email=email,
                )
            )
        else:
            db.add(
                Candidate(
                    user_id=int(user.id),
                    full_name=name or email.split("@", 1)[0],
                    email=email,
                    phone=phone,
                )
            )
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating user")

    profile = _profile_ids(db, user)
    logger.info("New %s account %s", role, user.id)
    return {
        "message": "User created successfully",
        "user": _user_dict(user, profile),
        "access_token": _token_for(user, profile),
        "token_type": "bearer",
    }


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")

    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "login")

    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail=get_error_message("invalid_credentials"))

    if payload.role and user.role != payload.role.strip().lower():
        raise HTTPException(
            status_code=403,
            detail="Role mismatch. Please select the correct account type.",
        )

    profile = _profile_ids(db, user)
    return {
        "access_token": _token_for(user, profile),
        "token_type": "bearer",
        "user": _user_dict(user, profile),
    }


@router.get("/me")
def me(db: Session = Depends(get_db), current=Depends(get_current_user)):
    user = db.query(User).filter(User.id == int(current.get("sub"))).first()
    if not user:
        raise UnauthorizedError(get_error_message("session_expired"))
    return {"success": True, "user": _user_dict(user, _profile_ids(db, user))}
