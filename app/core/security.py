"""Password hashing and bearer token minting/validation."""

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.hash import bcrypt

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated identity for the duration of one request."""

    user_id: uuid.UUID
    username: str
    role: str


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        # Not a bcrypt hash
        return False


class TokenStatus(str, enum.Enum):
    OK = "ok"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    UNKNOWN_USER = "unknown_user"


@dataclass(frozen=True)
class TokenResult:
    status: TokenStatus
    username: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.OK


class TokenService:
    """Issues and checks HS256 bearer tokens whose subject is the username."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiration_seconds: int = 86400,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expiration_seconds = expiration_seconds

    def mint(self, principal: Principal, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": principal.username,
            "uid": str(principal.user_id),
            "role": principal.role,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expiration_seconds),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def validate(self, token: str) -> TokenResult:
        """Check signature, expiry and shape. Never raises for bad input."""
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            return TokenResult(TokenStatus.EXPIRED)
        except jwt.InvalidSignatureError:
            return TokenResult(TokenStatus.BAD_SIGNATURE)
        except jwt.InvalidTokenError:
            return TokenResult(TokenStatus.MALFORMED)

        username = claims.get("sub")
        if not isinstance(username, str) or not username:
            return TokenResult(TokenStatus.MALFORMED)
        return TokenResult(TokenStatus.OK, username=username)


token_service = TokenService(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    expiration_seconds=settings.JWT_EXPIRATION_SECONDS,
)
