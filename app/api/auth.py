"""Account registration, login and the current-user lookup."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_principal, principal_from_user
from app.core.security import Principal, hash_password, token_service, verify_password
from app.database.session import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class MessageResponse(BaseModel):
    message: str


class AuthResponse(BaseModel):
    token: str | None = None
    id: str
    username: str
    email: str
    full_name: str | None = None


def _auth_response(user: User, token: str | None = None) -> AuthResponse:
    return AuthResponse(
        token=token,
        id=str(user.id),
        username=user.username,
        email=user.email,
        full_name=user.full_name,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def _registration_conflict(db: Session, body: RegisterRequest) -> str | None:
    if db.query(User).filter(User.username == body.username).first():
        return "Username is already taken"
    if db.query(User).filter(User.email == body.email).first():
        return "Email is already in use"
    return None


@router.post("/register", response_model=MessageResponse)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    conflict = _registration_conflict(db, body)
    if conflict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=conflict)

    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        full_name=body.full_name,
        role="USER",
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same name or email
        db.rollback()
        logger.warning("Registration conflict for username: %s", body.username)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email is already in use",
        )
    logger.info("User registered: %s", body.username)
    return MessageResponse(message="Registration successful")


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == body.username).first()
    if not user or not user.is_enabled or not verify_password(body.password, user.password_hash):
        logger.warning("Login failed for username: %s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    token = token_service.mint(principal_from_user(user))
    logger.info("User logged in: %s", user.username)
    return _auth_response(user, token)


@router.get("/me", response_model=AuthResponse)
def me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    user = db.get(User, principal.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return _auth_response(user)
