import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from jose import jwt, JWTError
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import Settings

logger = logging.getLogger(__name__)

# Bearer token extractor (auto_error=False so we can answer 401 ourselves)
security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"


class AuthenticationError(Exception):
    """Credentials are missing, malformed or invalid."""


@dataclass
class Principal:
    """Authenticated caller."""

    subject: str
    roles: set[str] = field(default_factory=set)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


class Authenticator(ABC):
    """Turns a bearer token into a Principal."""

    @abstractmethod
    def authenticate(self, token: str) -> Principal:
        """Raises AuthenticationError if the token is not valid."""


class JWTAuthenticator(Authenticator):
    """Verifies JWTs signed with a shared secret (HS256 by default).

    Roles are read from `app_metadata.roles`, plus `admin` when
    `app_metadata.is_admin` is set.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", audience: str | None = "authenticated"):
        if not secret:
            raise ValueError("JWT secret is not configured. Set JWT_SECRET.")
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def authenticate(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}") from e

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("Invalid token payload: missing sub claim")

        app_metadata = payload.get("app_metadata") or {}
        roles = set(app_metadata.get("roles") or [])
        if app_metadata.get("is_admin"):
            roles.add(ADMIN_ROLE)

        return Principal(subject=subject, roles=roles)

    def issue_token(self, subject: str, roles: list[str] | None = None, expires_at: int | None = None) -> str:
        """Sign a token for `subject`. Used by tooling and tests."""
        claims = {"sub": subject, "app_metadata": {"roles": list(roles or [])}}
        if self.audience:
            claims["aud"] = self.audience
        if expires_at is not None:
            claims["exp"] = expires_at
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)


class StaticTokenAuthenticator(Authenticator):
    """Single shared admin API token, for kiosks that cannot hold a session."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("Admin API token is not configured. Set ADMIN_API_TOKEN.")
        self.token = token

    def authenticate(self, token: str) -> Principal:
        if not secrets.compare_digest(token.encode(), self.token.encode()):
            raise AuthenticationError("Invalid API token")
        return Principal(subject="admin-token", roles={ADMIN_ROLE})


def create_authenticator(settings: Settings) -> Authenticator:
    """Create the authenticator selected by `settings.auth_backend`."""
    backend = settings.auth_backend.lower()
    if backend == "jwt":
        return JWTAuthenticator(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_audience or None)
    if backend == "token":
        return StaticTokenAuthenticator(settings.admin_api_token)
    raise ValueError(f"Unknown auth backend '{settings.auth_backend}'. Expected 'jwt' or 'token'.")


def get_authenticator(request: Request) -> Authenticator:
    """The authenticator configured at startup."""
    return request.app.state.authenticator


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Principal:
    """Require authentication - raises 401 if not authenticated."""
    if not credentials:
        logger.warning("Auth required but no Bearer token provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return authenticator.authenticate(credentials.credentials)
    except AuthenticationError as e:
        logger.warning(f"Authentication failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_admin(principal: Principal = Depends(require_auth)) -> Principal:
    """Require admin access - raises 403 if not an admin."""
    if not principal.is_admin:
        logger.warning(f"Admin access denied for {principal.subject}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal
