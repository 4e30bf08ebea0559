"""Request authentication and the per-request workspace context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from workhub.auth.jwt import AuthContext, decode_access_token
from workhub.core.errors import ErrorKind, api_error


AUTH_CONTEXT_KEY = "auth_context"
WORKSPACE_HEADER = "x-workspace-id"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity plus the workspace the caller asked to act on.

    ``requested_workspace_id`` comes from the ``x-workspace-id`` header and is
    None when the header is absent; services then fall back to the caller's
    default workspace.
    """

    auth: AuthContext
    requested_workspace_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.auth.user_id


def _extract_bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def resolve_request_auth_context(request: Request) -> Optional[AuthContext]:
    token = _extract_bearer_token(request)
    if not token:
        return None

    try:
        return decode_access_token(token)
    except HTTPException:
        return None


def get_optional_auth_context(request: Request) -> Optional[AuthContext]:
    return getattr(request.state, AUTH_CONTEXT_KEY, None)


def require_auth_context(auth: Optional[AuthContext] = Depends(get_optional_auth_context)) -> AuthContext:
    if auth is None:
        raise api_error(ErrorKind.UNAUTHENTICATED, "Not authenticated")
    return auth


def get_request_context(
    auth: AuthContext = Depends(require_auth_context),
    workspace_id: Optional[str] = Header(default=None, alias=WORKSPACE_HEADER),
) -> RequestContext:
    requested = (workspace_id or "").strip() or None
    return RequestContext(auth=auth, requested_workspace_id=requested)
