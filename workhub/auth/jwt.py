"""JWT issue/verify primitives for workspace-scoped authentication."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from workhub.core.config import get_settings
from workhub.core.errors import ErrorKind, api_error


DEVELOPMENT_SIGNING_KEY = "workhub-development-signing-key-change-me"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    workspace_id: str
    role: str
    email: str
    username: str = ""


def _signing_key() -> str:
    return get_settings().secret_key or DEVELOPMENT_SIGNING_KEY


def create_access_token(context: AuthContext) -> tuple[str, int]:
    settings = get_settings()
    expires_in = settings.access_token_exp_minutes * 60
    now = datetime.now(timezone.utc)
    payload = {
        "sub": context.user_id,
        "email": context.email,
        "username": context.username,
        "workspace_id": context.workspace_id,
        "role": context.role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    token = jwt.encode(payload, _signing_key(), algorithm=settings.jwt_algorithm)
    return token, expires_in


def decode_access_token(token: str) -> AuthContext:
    settings = get_settings()
    try:
        payload = jwt.decode(token, _signing_key(), algorithms=[settings.jwt_algorithm])
        return AuthContext(
            user_id=str(payload["sub"]),
            workspace_id=str(payload["workspace_id"]),
            role=str(payload["role"]),
            email=str(payload.get("email", "")),
            username=str(payload.get("username", "")),
        )
    except (jwt.PyJWTError, KeyError) as exc:
        raise api_error(ErrorKind.UNAUTHENTICATED, "Invalid or expired token") from exc
