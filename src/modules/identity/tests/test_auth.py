"""Tests for JWT authentication and the writer-role check."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from src.config import settings
from src.exceptions import ForbiddenException, UnauthorizedException
from src.modules.identity.auth import AuthenticatedUser, get_current_user, require_writer


def _token(claims: dict, secret: str | None = None) -> HTTPAuthorizationCredentials:
    token = jwt.encode(
        claims,
        secret or settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentUser:
    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        user_id = uuid.uuid4()
        creds = _token({"sub": str(user_id), "email": "ops@example.com", "role": "ADMIN"})

        user = await get_current_user(creds)

        assert user == AuthenticatedUser(id=user_id, email="ops@example.com", role="ADMIN")

    @pytest.mark.asyncio
    async def test_role_defaults_to_member(self) -> None:
        creds = _token({"sub": str(uuid.uuid4()), "email": "ops@example.com"})
        user = await get_current_user(creds)
        assert user.role == "MEMBER"
        assert user.can_write is True

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        with pytest.raises(UnauthorizedException, match="Authentication required"):
            await get_current_user(None)

    @pytest.mark.asyncio
    async def test_wrong_secret(self) -> None:
        creds = _token({"sub": str(uuid.uuid4()), "email": "x@example.com"}, secret="not-the-key")
        with pytest.raises(UnauthorizedException, match="Invalid or expired"):
            await get_current_user(creds)

    @pytest.mark.asyncio
    async def test_expired_token(self) -> None:
        expired = datetime.now(UTC) - timedelta(minutes=5)
        creds = _token({"sub": str(uuid.uuid4()), "email": "x@example.com", "exp": expired})
        with pytest.raises(UnauthorizedException):
            await get_current_user(creds)

    @pytest.mark.asyncio
    async def test_missing_claims(self) -> None:
        creds = _token({"sub": "not-a-uuid", "email": "x@example.com"})
        with pytest.raises(UnauthorizedException, match="missing required claims"):
            await get_current_user(creds)


class TestRequireWriter:
    @pytest.mark.parametrize("role", ["OWNER", "ADMIN", "MEMBER"])
    def test_writers_allowed(self, role: str) -> None:
        require_writer(AuthenticatedUser(id=uuid.uuid4(), email="a@example.com", role=role))

    def test_viewer_rejected(self) -> None:
        viewer = AuthenticatedUser(id=uuid.uuid4(), email="a@example.com", role="VIEWER")
        with pytest.raises(ForbiddenException, match="VIEWER"):
            require_writer(viewer)
