"""Per-request authentication gate.

Classifies each request as public or protected from an ordered prefix
table, and for protected requests turns a ``Bearer`` token into a
``Principal``. The gate never rejects a request itself: a request that
leaves it without a principal is refused later by the
``get_current_principal`` dependency on protected routes.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from app.core.config import settings
from app.core.security import Principal, TokenResult, TokenService, TokenStatus

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

PrincipalLoader = Callable[[str], Optional[Principal]]


class Access(str, enum.Enum):
    PUBLIC = "public"
    PROTECTED = "protected"


@dataclass(frozen=True)
class AccessRule:
    prefix: str
    access: Access


def default_rules() -> list[AccessRule]:
    return [
        # Needs the caller's identity despite living under the auth prefix
        AccessRule(f"{settings.AUTH_PATH_PREFIX}me", Access.PROTECTED),
        AccessRule(settings.AUTH_PATH_PREFIX, Access.PUBLIC),
        AccessRule(settings.STATIC_PATH_PREFIX, Access.PUBLIC),
        AccessRule(settings.IMAGE_PATH_PREFIX, Access.PUBLIC),
    ]


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class AuthenticationGate:
    def __init__(
        self,
        token_service: TokenService,
        rules: Optional[Sequence[AccessRule]] = None,
        default: Access = Access.PROTECTED,
    ):
        self.token_service = token_service
        self.rules = list(rules) if rules is not None else default_rules()
        self.default = default

    def classify(self, method: str, path: str) -> Access:
        # CORS preflight always passes, ahead of the table
        if method.upper() == "OPTIONS":
            return Access.PUBLIC
        for rule in self.rules:
            if path.startswith(rule.prefix):
                return rule.access
        return self.default

    def resolve(self, token: str, load_principal: PrincipalLoader) -> tuple[TokenResult, Optional[Principal]]:
        result = self.token_service.validate(token)
        if not result.ok:
            return result, None
        try:
            principal = load_principal(result.username)
        except Exception as e:
            logger.error("Cannot load principal %s: %s", result.username, e)
            principal = None
        if principal is None:
            return TokenResult(TokenStatus.UNKNOWN_USER, username=result.username), None
        return result, principal

    def authenticate(
        self,
        method: str,
        path: str,
        authorization: Optional[str],
        load_principal: PrincipalLoader,
    ) -> Optional[Principal]:
        """Return the principal for a protected request, or None."""
        if self.classify(method, path) is Access.PUBLIC:
            return None

        token = parse_bearer(authorization)
        if token is None:
            return None

        result, principal = self.resolve(token, load_principal)
        if principal is None:
            logger.warning(
                "Bearer token rejected for %s %s: %s", method, path, result.status.value,
            )
        return principal
