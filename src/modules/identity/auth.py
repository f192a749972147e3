"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header and returns the caller
identity. Services receive that identity as an explicit ``actor`` argument;
nothing downstream reads tokens or request state on its own.
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.exceptions import ForbiddenException, UnauthorizedException

logger = logging.getLogger(__name__)

# FastAPI security scheme — extracts Bearer token from Authorization header
_bearer_scheme = HTTPBearer(auto_error=False)

# Roles allowed to write to the ledger or change document status
WRITER_ROLES = frozenset({"OWNER", "ADMIN", "MEMBER"})


@dataclass(frozen=True)
class AuthenticatedUser:
    """The caller extracted from a JWT token."""

    id: uuid.UUID
    email: str
    role: str = "MEMBER"

    @property
    def can_write(self) -> bool:
        return self.role in WRITER_ROLES


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that extracts and validates the current user from JWT."""
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    payload = _decode_token(credentials.credentials)

    try:
        return AuthenticatedUser(
            id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            role=payload.get("role", "MEMBER"),
        )
    except (KeyError, ValueError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc


def require_writer(user: AuthenticatedUser) -> None:
    """Raise ForbiddenException for read-only callers."""
    if not user.can_write:
        raise ForbiddenException(f"Role '{user.role}' cannot modify documents")
