"""Authentication API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.auth.jwt import AuthContext, create_access_token
from workhub.schemas.auth import LoginRequest, SignupRequest, SignupResponse, TokenResponse
from workhub.storage.db import get_session
from workhub.storage.tenant import set_workspace_context
from workhub.workspaces.service import authenticate_workspace_user, create_user


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup(payload: SignupRequest, session: Session = Depends(get_session)) -> SignupResponse:
    user = create_user(
        session,
        email=payload.email,
        username=payload.username,
        password=payload.password,
    )
    return SignupResponse(user_id=user.id, email=user.email, username=user.username)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> TokenResponse:
    set_workspace_context(session, payload.workspace_id)
    user, membership = authenticate_workspace_user(
        session,
        email=payload.email,
        password=payload.password,
        workspace_id=payload.workspace_id,
    )

    token, expires_in = create_access_token(
        AuthContext(
            user_id=user.id,
            workspace_id=payload.workspace_id,
            role=membership.role,
            email=user.email,
            username=user.username,
        )
    )

    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        workspace_id=payload.workspace_id,
        role=membership.role,
    )
