import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterable, Optional

from jose import JWTError, jwt

from cms.core.exceptions import Unauthenticated
from cms.models.enums import Role
from cms.utils.clock import utcnow

logger = logging.getLogger(__name__)

MISSING_TOKEN = "Token was not provided"
# One message for every verification failure so callers cannot probe why a token was refused
INVALID_TOKEN = "Invalid or expired token"


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    department_id: Optional[str] = None
    roles: frozenset = frozenset()

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        return not self.roles.isdisjoint(roles)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None

    parts = authorization.split(" ")
    if len(parts) != 2:
        return None

    scheme, token = parts
    if scheme != "Bearer" or not token:
        return None
    return token


def _parse_roles(raw: Any) -> frozenset:
    if raw is None:
        return frozenset()
    if not isinstance(raw, (list, tuple)):
        raise Unauthenticated(INVALID_TOKEN)

    roles = set()
    for value in raw:
        try:
            roles.add(Role(value))
        except ValueError:
            logger.debug("Ignoring unknown role claim %r", value)
    return frozenset(roles)


def identity_from_claims(claims: dict) -> Identity:
    subject = claims.get("sub") or claims.get("userId")
    if not subject:
        raise Unauthenticated(INVALID_TOKEN)

    department_id = claims.get("departmentId")
    return Identity(
        id=str(subject),
        email=claims.get("email"),
        name=claims.get("name"),
        department_id=str(department_id) if department_id is not None else None,
        roles=_parse_roles(claims.get("roles")),
    )


class TokenVerifier:
    """Validates tokens issued by the SSO server and turns their claims into an Identity."""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def decode(self, token: str) -> dict:
        options = {
            "require_exp": True,
            "verify_aud": self.audience is not None,
        }
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc.__class__.__name__)
            raise Unauthenticated(INVALID_TOKEN) from exc

    def verify(self, authorization: Optional[str]) -> Identity:
        token = extract_bearer_token(authorization)
        if token is None:
            raise Unauthenticated(MISSING_TOKEN)

        return identity_from_claims(self.decode(token))


def create_access_token(
    data: dict,
    secret: str,
    expires_delta: timedelta,
    algorithm: str = "HS256",
) -> str:
    """Sign a token shaped like the SSO server's, for local development and tests."""
    now = utcnow()
    to_encode = data.copy()
    to_encode["iat"] = int(now.timestamp())
    to_encode["exp"] = int((now + expires_delta).timestamp())
    if "jti" not in to_encode:
        to_encode["jti"] = uuid.uuid4().hex

    return jwt.encode(to_encode, secret, algorithm=algorithm)
