"""Routes for the caller's current workspace and its members."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workhub.auth.dependencies import RequestContext, get_request_context
from workhub.auth.jwt import AuthContext, create_access_token
from workhub.core.config import get_settings
from workhub.core.errors import ErrorKind, api_error
from workhub.schemas.members import (
    Envelope,
    MemberAddRequest,
    MemberItem,
    RoleUpdateRequest,
    SwitchWorkspaceData,
    SwitchWorkspaceRequest,
    WorkspaceItem,
)
from workhub.schemas.workspace import WorkspaceSettingsData, WorkspaceSettingsUpdateRequest
from workhub.storage.db import get_session
from workhub.storage.models import Workspace, WorkspaceMember
from workhub.storage.tenant import set_workspace_context
from workhub.workspaces.members import change_member_role, list_workspace_members, remove_workspace_member
from workhub.workspaces.service import (
    get_workspace_settings,
    invite_member_by_email,
    list_user_workspaces,
    resolve_current_workspace_id,
    switch_workspace,
    update_workspace_settings,
)


router = APIRouter(prefix="/workspace", tags=["workspace-members"])


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else str(value)


def _member_item(member: WorkspaceMember) -> MemberItem:
    return MemberItem(
        member_id=member.member_id,
        username=member.username,
        email=member.email,
        role=member.role,
        joined_at=_isoformat(member.joined_at) or "",
    )


def _current_workspace_id(session: Session, context: RequestContext) -> str:
    workspace_id = resolve_current_workspace_id(
        session,
        context.user_id,
        requested_workspace_id=context.requested_workspace_id,
        default_workspace_id=context.auth.workspace_id,
    )
    if workspace_id is None:
        raise api_error(ErrorKind.NOT_FOUND, "No workspace found for user")

    set_workspace_context(session, workspace_id)
    return workspace_id


def _settings_data(workspace: Workspace) -> WorkspaceSettingsData:
    return WorkspaceSettingsData(
        workspace_name=workspace.name,
        default_role=workspace.default_role,
        allow_member_invites=workspace.allow_member_invites,
    )


@router.get("/members", response_model=Envelope[list[MemberItem]])
def get_members(
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[list[MemberItem]]:
    _workspace, members = list_workspace_members(session, context)
    return Envelope[list[MemberItem]](
        message="Members retrieved successfully",
        data=[_member_item(member) for member in members],
    )


@router.post("/members", response_model=Envelope[MemberItem], status_code=201)
def add_member(
    payload: MemberAddRequest,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[MemberItem]:
    workspace_id = _current_workspace_id(session, context)
    member = invite_member_by_email(
        session,
        workspace_id=workspace_id,
        caller_id=context.user_id,
        email=payload.email,
        role=payload.role,
    )
    return Envelope[MemberItem](message="Member added to workspace successfully", data=_member_item(member))


@router.put("/members/{member_id}", response_model=Envelope[None], response_model_exclude_none=True)
def update_member_role(
    member_id: str,
    payload: Optional[RoleUpdateRequest] = None,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[None]:
    change_member_role(
        session,
        context,
        member_id=member_id,
        role=payload.role if payload is not None else None,
        owner_grant_requires_owner=get_settings().owner_grant_requires_owner,
    )
    return Envelope[None](message="Member role updated successfully")


@router.delete("/members/{member_id}", response_model=Envelope[None], response_model_exclude_none=True)
def delete_member(
    member_id: str,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[None]:
    remove_workspace_member(session, context, member_id=member_id)
    return Envelope[None](message="Member removed from workspace successfully")


@router.get("/user", response_model=Envelope[list[WorkspaceItem]])
def get_user_workspaces(
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[list[WorkspaceItem]]:
    summaries = list_user_workspaces(session, context.user_id)
    if not summaries:
        return Envelope[list[WorkspaceItem]](message="No workspaces found", data=[])

    items = [
        WorkspaceItem(
            id=summary.id,
            name=summary.name,
            owner_id=summary.owner_id,
            member_count=summary.member_count,
            user_role=summary.user_role,
            is_owner=summary.is_owner,
            created_at=_isoformat(summary.created_at),
        )
        for summary in summaries
    ]
    return Envelope[list[WorkspaceItem]](message="Workspaces retrieved successfully", data=items)


@router.post("/switch", response_model=Envelope[SwitchWorkspaceData])
def post_switch_workspace(
    payload: SwitchWorkspaceRequest,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[SwitchWorkspaceData]:
    workspace_id = (payload.workspace_id or "").strip()
    if not workspace_id:
        raise api_error(ErrorKind.INVALID_INPUT, "Workspace ID is required")

    workspace, membership = switch_workspace(session, user_id=context.user_id, workspace_id=workspace_id)
    token, expires_in = create_access_token(
        AuthContext(
            user_id=context.user_id,
            workspace_id=workspace.id,
            role=membership.role,
            email=context.auth.email,
            username=context.auth.username,
        )
    )
    return Envelope[SwitchWorkspaceData](
        message="Workspace switched successfully",
        data=SwitchWorkspaceData(
            workspace_id=workspace.id,
            role=membership.role,
            access_token=token,
            expires_in=expires_in,
        ),
    )


@router.get("/settings", response_model=Envelope[WorkspaceSettingsData])
def read_workspace_settings(
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[WorkspaceSettingsData]:
    workspace = get_workspace_settings(
        session,
        workspace_id=_current_workspace_id(session, context),
        caller_id=context.user_id,
    )
    return Envelope[WorkspaceSettingsData](message="Workspace settings retrieved successfully", data=_settings_data(workspace))


@router.put("/settings", response_model=Envelope[WorkspaceSettingsData])
def write_workspace_settings(
    payload: WorkspaceSettingsUpdateRequest,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Envelope[WorkspaceSettingsData]:
    workspace = update_workspace_settings(
        session,
        workspace_id=_current_workspace_id(session, context),
        caller_id=context.user_id,
        workspace_name=payload.workspace_name,
        default_role=payload.default_role,
        allow_member_invites=payload.allow_member_invites,
    )
    return Envelope[WorkspaceSettingsData](message="Workspace settings updated successfully", data=_settings_data(workspace))
