"""Workspace, user and membership application services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
from typing import Any, Dict, Optional
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from workhub.core.errors import ErrorKind, api_error
from workhub.core.logger import get_logger
from workhub.storage.models import User, UserWorkspace, Workspace, WorkspaceEvent, WorkspaceMember
from workhub.storage.security import hash_password, verify_password
from workhub.workspaces.policy import MANAGING_ROLES, WorkspaceRole, coerce_role, parse_role


logger = get_logger("workhub.workspaces")

ASSIGNABLE_ON_ADD = frozenset({WorkspaceRole.ADMIN, WorkspaceRole.MEMBER})
INSUFFICIENT_PERMISSIONS = "Insufficient permissions"


@dataclass(frozen=True)
class WorkspaceSummary:
    id: str
    name: str
    owner_id: Optional[str]
    member_count: int
    user_role: str
    is_owner: bool
    created_at: Optional[datetime]


def _json_dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


def record_workspace_event(session: Session, *, workspace_id: str, event_type: str, payload: Dict[str, Any]) -> None:
    """Stage an audit row; it commits with the caller's transaction."""

    session.add(
        WorkspaceEvent(
            id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            event_type=event_type,
            payload_json=_json_dumps(payload),
        )
    )


def get_membership(session: Session, workspace_id: str, member_id: str) -> Optional[WorkspaceMember]:
    return session.scalar(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.member_id == member_id,
        )
    )


def get_user_workspace_ids(session: Session, user_id: str) -> list[str]:
    return list(
        session.scalars(
            select(UserWorkspace.workspace_id)
            .where(UserWorkspace.user_id == user_id)
            .order_by(UserWorkspace.created_at, UserWorkspace.id)
        ).all()
    )


def resolve_current_workspace_id(
    session: Session,
    user_id: str,
    requested_workspace_id: Optional[str] = None,
    default_workspace_id: Optional[str] = None,
) -> Optional[str]:
    """Pick the workspace a request acts on.

    A requested id is only honoured when the user belongs to it; it never
    falls back to a different workspace. Without a request, the token's
    workspace wins if the user still belongs to it, then the first one joined.
    """

    workspace_ids = get_user_workspace_ids(session, user_id)
    if not workspace_ids:
        return None

    if requested_workspace_id:
        return requested_workspace_id if requested_workspace_id in workspace_ids else None

    if default_workspace_id and default_workspace_id in workspace_ids:
        return default_workspace_id
    return workspace_ids[0]


def create_user(session: Session, *, email: str, username: str, password: str) -> User:
    existing = session.scalar(select(User).where(or_(User.email == email, User.username == username)))
    if existing is not None:
        raise api_error(ErrorKind.CONFLICT, "User already exists")

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        username=username,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.commit()
    logger.info("user_created", user_id=user.id)
    return user


def create_workspace_with_owner(
    session: Session,
    *,
    workspace_name: str,
    owner_email: str,
    owner_username: str,
    owner_password: str,
) -> tuple[Workspace, User]:
    existing_workspace = session.scalar(select(Workspace).where(Workspace.name == workspace_name))
    if existing_workspace is not None:
        raise api_error(ErrorKind.CONFLICT, "Workspace name already exists")

    user = session.scalar(select(User).where(User.email == owner_email))
    if user is None:
        username_taken = session.scalar(select(User.id).where(User.username == owner_username))
        if username_taken is not None:
            raise api_error(ErrorKind.CONFLICT, "Username already exists")
        user = User(
            id=str(uuid.uuid4()),
            email=owner_email,
            username=owner_username,
            password_hash=hash_password(owner_password),
        )
        session.add(user)
        session.flush()
    elif not verify_password(owner_password, user.password_hash):
        raise api_error(ErrorKind.CONFLICT, "Owner email already exists with different credentials")

    workspace = Workspace(
        id=str(uuid.uuid4()),
        name=workspace_name,
        owner_id=user.id,
        default_role=WorkspaceRole.MEMBER.value,
        allow_member_invites=True,
    )
    session.add(workspace)
    session.flush()

    session.add(
        WorkspaceMember(
            id=str(uuid.uuid4()),
            workspace_id=workspace.id,
            member_id=user.id,
            username=user.username,
            email=user.email,
            role=WorkspaceRole.OWNER.value,
        )
    )
    session.add(UserWorkspace(id=str(uuid.uuid4()), user_id=user.id, workspace_id=workspace.id))
    record_workspace_event(
        session,
        workspace_id=workspace.id,
        event_type="workspace_created",
        payload={"owner_id": user.id},
    )
    session.commit()

    logger.info("workspace_created", workspace_id=workspace.id, owner_id=user.id)
    return workspace, user


def authenticate_workspace_user(
    session: Session,
    *,
    email: str,
    password: str,
    workspace_id: str,
) -> tuple[User, WorkspaceMember]:
    user = session.scalar(select(User).where(User.email == email, User.is_active.is_(True)))
    if user is None or not verify_password(password, user.password_hash):
        raise api_error(ErrorKind.UNAUTHENTICATED, "Invalid credentials")

    membership = get_membership(session, workspace_id, user.id)
    if membership is None:
        raise api_error(ErrorKind.FORBIDDEN, "User is not a member of this workspace")

    return user, membership


def get_workspace_for_member(session: Session, workspace_id: str, user_id: str) -> tuple[Workspace, WorkspaceMember]:
    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")

    membership = get_membership(session, workspace_id, user_id)
    if membership is None:
        raise api_error(ErrorKind.FORBIDDEN, "Not allowed to access this workspace")

    return workspace, membership


def add_workspace_member(
    session: Session,
    *,
    workspace_id: str,
    user_id: str,
    role: Optional[str] = None,
) -> WorkspaceMember:
    """Join ``user_id`` to the workspace and to their own workspace list in one commit."""

    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")

    resolved_role = parse_role(role if role is not None else workspace.default_role)
    if resolved_role not in ASSIGNABLE_ON_ADD:
        raise api_error(ErrorKind.INVALID_INPUT, "Invalid role")

    user = session.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise api_error(ErrorKind.NOT_FOUND, "User not found")
    if get_membership(session, workspace_id, user_id) is not None:
        raise api_error(ErrorKind.CONFLICT, "User is already a member of this workspace")

    member = WorkspaceMember(
        id=str(uuid.uuid4()),
        workspace_id=workspace_id,
        member_id=user.id,
        username=user.username,
        email=user.email,
        role=resolved_role.value,
    )
    session.add(member)
    listed = session.scalar(
        select(UserWorkspace.id).where(UserWorkspace.user_id == user.id, UserWorkspace.workspace_id == workspace_id)
    )
    if listed is None:
        session.add(UserWorkspace(id=str(uuid.uuid4()), user_id=user.id, workspace_id=workspace_id))
    record_workspace_event(
        session,
        workspace_id=workspace_id,
        event_type="member_joined",
        payload={"member_id": user.id, "role": resolved_role.value},
    )
    session.commit()

    logger.info("member_joined", workspace_id=workspace_id, member_id=user.id, role=resolved_role.value)
    return member


def invite_member_by_email(
    session: Session,
    *,
    workspace_id: str,
    caller_id: str,
    email: str,
    role: Optional[str] = None,
) -> WorkspaceMember:
    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")

    caller = get_membership(session, workspace_id, caller_id)
    caller_role = coerce_role(caller.role) if caller is not None else None
    if caller_role not in MANAGING_ROLES:
        raise api_error(ErrorKind.FORBIDDEN, "You don't have permission to add members")
    if caller_role is not WorkspaceRole.OWNER and not workspace.allow_member_invites:
        raise api_error(ErrorKind.FORBIDDEN, "Member invites are disabled for this workspace")

    user = session.scalar(select(User).where(User.email == email, User.is_active.is_(True)))
    if user is None:
        raise api_error(ErrorKind.NOT_FOUND, "User not found")

    return add_workspace_member(session, workspace_id=workspace_id, user_id=user.id, role=role)


def list_user_workspaces(session: Session, user_id: str) -> list[WorkspaceSummary]:
    workspace_ids = get_user_workspace_ids(session, user_id)
    if not workspace_ids:
        return []

    workspaces = {
        workspace.id: workspace
        for workspace in session.scalars(select(Workspace).where(Workspace.id.in_(workspace_ids))).all()
    }
    counts = dict(
        session.execute(
            select(WorkspaceMember.workspace_id, func.count(WorkspaceMember.id))
            .where(WorkspaceMember.workspace_id.in_(workspace_ids))
            .group_by(WorkspaceMember.workspace_id)
        ).all()
    )
    roles = dict(
        session.execute(
            select(WorkspaceMember.workspace_id, WorkspaceMember.role).where(
                WorkspaceMember.workspace_id.in_(workspace_ids),
                WorkspaceMember.member_id == user_id,
            )
        ).all()
    )

    summaries = []
    for workspace_id in workspace_ids:
        workspace = workspaces.get(workspace_id)
        if workspace is None:
            continue
        summaries.append(
            WorkspaceSummary(
                id=workspace.id,
                name=workspace.name,
                owner_id=workspace.owner_id,
                member_count=int(counts.get(workspace.id, 0)),
                user_role=coerce_role(roles.get(workspace.id)).value,
                is_owner=workspace.owner_id == user_id,
                created_at=workspace.created_at,
            )
        )
    return summaries


def switch_workspace(session: Session, *, user_id: str, workspace_id: str) -> tuple[Workspace, WorkspaceMember]:
    user = session.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise api_error(ErrorKind.NOT_FOUND, "User not found")

    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")

    membership = get_membership(session, workspace_id, user_id)
    if membership is None:
        raise api_error(ErrorKind.FORBIDDEN, "You are not a member of this workspace")

    logger.info("workspace_switched", user_id=user_id, target_workspace_id=workspace_id)
    return workspace, membership


def _get_workspace_or_404(session: Session, workspace_id: str) -> Workspace:
    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")
    return workspace


def get_workspace_settings(session: Session, *, workspace_id: str, caller_id: str) -> Workspace:
    workspace = _get_workspace_or_404(session, workspace_id)
    if get_membership(session, workspace_id, caller_id) is None:
        raise api_error(ErrorKind.FORBIDDEN, INSUFFICIENT_PERMISSIONS)
    return workspace


def update_workspace_settings(
    session: Session,
    *,
    workspace_id: str,
    caller_id: str,
    workspace_name: Optional[str] = None,
    default_role: Optional[str] = None,
    allow_member_invites: Optional[bool] = None,
) -> Workspace:
    """Apply the provided settings fields; only the workspace Owner may do so."""

    workspace = _get_workspace_or_404(session, workspace_id)
    caller = get_membership(session, workspace_id, caller_id)
    if caller is None or coerce_role(caller.role) is not WorkspaceRole.OWNER:
        raise api_error(ErrorKind.FORBIDDEN, INSUFFICIENT_PERMISSIONS)

    changes: Dict[str, Any] = {}
    if workspace_name is not None:
        name = workspace_name.strip()
        if not name:
            raise api_error(ErrorKind.INVALID_INPUT, "Workspace name is required")
        if name != workspace.name:
            taken = session.scalar(select(Workspace.id).where(Workspace.name == name, Workspace.id != workspace.id))
            if taken is not None:
                raise api_error(ErrorKind.CONFLICT, "Workspace name already exists")
            changes["name"] = name
    if default_role is not None:
        resolved_role = parse_role(default_role)
        if resolved_role not in ASSIGNABLE_ON_ADD:
            raise api_error(ErrorKind.INVALID_INPUT, "Invalid default role")
        changes["default_role"] = resolved_role.value
    if allow_member_invites is not None:
        changes["allow_member_invites"] = allow_member_invites

    if not changes:
        return workspace

    for field_name, value in changes.items():
        setattr(workspace, field_name, value)
    record_workspace_event(
        session,
        workspace_id=workspace.id,
        event_type="workspace_settings_updated",
        payload={"changed_by": caller_id, "changes": changes},
    )
    session.commit()

    logger.info("workspace_settings_updated", workspace_id=workspace.id, fields=sorted(changes))
    return workspace
