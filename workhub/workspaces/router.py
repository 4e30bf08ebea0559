"""Workspace management API routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.auth.dependencies import require_auth_context
from workhub.auth.jwt import AuthContext
from workhub.schemas.workspace import WorkspaceCreateRequest, WorkspaceCreateResponse, WorkspaceResponse
from workhub.storage.db import get_session
from workhub.storage.tenant import set_workspace_context
from workhub.workspaces.policy import WorkspaceRole
from workhub.workspaces.service import create_workspace_with_owner, get_workspace_for_member


router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("", response_model=WorkspaceCreateResponse, status_code=201)
def create_workspace(
    payload: WorkspaceCreateRequest,
    session: Session = Depends(get_session),
) -> WorkspaceCreateResponse:
    workspace, user = create_workspace_with_owner(
        session,
        workspace_name=payload.name,
        owner_email=payload.owner_email,
        owner_username=payload.owner_username,
        owner_password=payload.owner_password,
    )
    return WorkspaceCreateResponse(
        workspace_id=workspace.id,
        name=workspace.name,
        owner_user_id=user.id,
        owner_role=WorkspaceRole.OWNER.value,
    )


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
def get_workspace(
    workspace_id: str,
    auth: AuthContext = Depends(require_auth_context),
    session: Session = Depends(get_session),
) -> WorkspaceResponse:
    set_workspace_context(session, workspace_id)
    workspace, membership = get_workspace_for_member(
        session=session,
        workspace_id=workspace_id,
        user_id=auth.user_id,
    )
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        owner_id=workspace.owner_id,
        default_role=workspace.default_role,
        allow_member_invites=workspace.allow_member_invites,
        created_at=workspace.created_at.isoformat() if isinstance(workspace.created_at, datetime) else str(workspace.created_at),
        my_role=membership.role,
    )
