"""Workspace Membership Authority: role changes and member removal.

Both mutations follow the same shape: resolve the workspace for the caller,
load the caller's and target's membership, ask the policy for a decision and
apply a single transaction. Denials are raised as ``HTTPException`` built from
the decision; anything unexpected is rolled back, logged and surfaced as an
internal error without details.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import HTTPException
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from workhub.auth.dependencies import RequestContext
from workhub.core.errors import INTERNAL_ERROR_MESSAGE, ErrorKind, api_error, kind_for_status
from workhub.core.logger import get_logger
from workhub.core.metrics import record_membership_mutation
from workhub.core.observability import capture_exception
from workhub.storage.models import UserWorkspace, Workspace, WorkspaceMember
from workhub.storage.tenant import set_workspace_context
from workhub.workspaces.policy import (
    MEMBER_NOT_FOUND,
    Decision,
    WorkspaceRole,
    check_requested_role,
    coerce_role,
    evaluate_member_removal,
    evaluate_role_change,
    parse_role,
)
from workhub.workspaces.service import get_membership, record_workspace_event, resolve_current_workspace_id


logger = get_logger("workhub.members")

OPERATION_CHANGE_ROLE = "change_role"
OPERATION_REMOVE_MEMBER = "remove_member"
OPERATION_LIST_MEMBERS = "list_members"


@contextmanager
def _membership_operation(session: Session, operation: str, context: RequestContext) -> Iterator[None]:
    try:
        yield
    except HTTPException as exc:
        session.rollback()
        kind = kind_for_status(exc.status_code)
        if operation != OPERATION_LIST_MEMBERS:
            record_membership_mutation(operation=operation, outcome=kind.value)
        logger.info(
            "membership_request_denied",
            operation=operation,
            caller_id=context.user_id,
            outcome=kind.value,
            reason=exc.detail,
        )
        raise
    except Exception as exc:
        session.rollback()
        if operation != OPERATION_LIST_MEMBERS:
            record_membership_mutation(operation=operation, outcome=ErrorKind.INTERNAL.value)
        logger.exception("membership_request_failed", operation=operation, caller_id=context.user_id)
        capture_exception(exc)
        raise api_error(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE) from exc


def _raise_if_denied(decision: Decision) -> None:
    if not decision.allowed:
        assert decision.kind is not None and decision.reason is not None
        raise api_error(decision.kind, decision.reason)


def _load_workspace(session: Session, context: RequestContext) -> Workspace:
    workspace_id = resolve_current_workspace_id(
        session,
        context.user_id,
        requested_workspace_id=context.requested_workspace_id,
        default_workspace_id=context.auth.workspace_id,
    )
    if workspace_id is None:
        raise api_error(ErrorKind.NOT_FOUND, "No workspace found for user")

    set_workspace_context(session, workspace_id)
    workspace = session.scalar(select(Workspace).where(Workspace.id == workspace_id))
    if workspace is None:
        raise api_error(ErrorKind.NOT_FOUND, "Workspace not found")
    return workspace


def _role_of(member: Optional[WorkspaceMember]) -> Optional[WorkspaceRole]:
    if member is None:
        return None
    return coerce_role(member.role)


def list_workspace_members(session: Session, context: RequestContext) -> tuple[Workspace, list[WorkspaceMember]]:
    with _membership_operation(session, OPERATION_LIST_MEMBERS, context):
        workspace = _load_workspace(session, context)
        if get_membership(session, workspace.id, context.user_id) is None:
            raise api_error(ErrorKind.FORBIDDEN, "You are not a member of this workspace")

        members = list(
            session.scalars(
                select(WorkspaceMember)
                .where(WorkspaceMember.workspace_id == workspace.id)
                .order_by(WorkspaceMember.joined_at, WorkspaceMember.id)
            ).all()
        )
        return workspace, members


def change_member_role(
    session: Session,
    context: RequestContext,
    *,
    member_id: str,
    role: object,
    owner_grant_requires_owner: bool = False,
) -> str:
    """Set ``member_id``'s role in the caller's workspace and return the workspace id."""

    with _membership_operation(session, OPERATION_CHANGE_ROLE, context):
        _raise_if_denied(check_requested_role(role))
        workspace = _load_workspace(session, context)

        caller = get_membership(session, workspace.id, context.user_id)
        target = get_membership(session, workspace.id, member_id)
        decision = evaluate_role_change(
            _role_of(caller),
            _role_of(target),
            member_id == context.user_id,
            role,
            owner_grant_requires_owner=owner_grant_requires_owner,
        )
        _raise_if_denied(decision)

        new_role = parse_role(role)
        assert new_role is not None
        previous_role = target.role if target is not None else None

        result = session.execute(
            update(WorkspaceMember)
            .where(
                WorkspaceMember.workspace_id == workspace.id,
                WorkspaceMember.member_id == member_id,
            )
            .values(role=new_role.value)
        )
        if result.rowcount == 0:
            raise api_error(ErrorKind.NOT_FOUND, MEMBER_NOT_FOUND)

        record_workspace_event(
            session,
            workspace_id=workspace.id,
            event_type="member_role_changed",
            payload={
                "changed_by": context.user_id,
                "member_id": member_id,
                "previous_role": previous_role,
                "role": new_role.value,
            },
        )
        session.commit()

    record_membership_mutation(operation=OPERATION_CHANGE_ROLE, outcome="allowed")
    logger.info(
        "member_role_changed",
        workspace_id=workspace.id,
        caller_id=context.user_id,
        member_id=member_id,
        previous_role=previous_role,
        role=new_role.value,
    )
    return workspace.id


def remove_workspace_member(session: Session, context: RequestContext, *, member_id: str) -> str:
    """Remove ``member_id`` from the caller's workspace and return the workspace id.

    The member row and the user's workspace list entry are deleted in the same
    transaction.
    """

    with _membership_operation(session, OPERATION_REMOVE_MEMBER, context):
        workspace = _load_workspace(session, context)

        caller = get_membership(session, workspace.id, context.user_id)
        target = get_membership(session, workspace.id, member_id)
        decision = evaluate_member_removal(
            _role_of(caller),
            _role_of(target),
            member_id == context.user_id,
        )
        _raise_if_denied(decision)
        assert target is not None
        removed_role = target.role

        result = session.execute(
            delete(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace.id,
                WorkspaceMember.member_id == member_id,
            )
        )
        if result.rowcount == 0:
            raise api_error(ErrorKind.NOT_FOUND, MEMBER_NOT_FOUND)

        session.execute(
            delete(UserWorkspace).where(
                UserWorkspace.user_id == member_id,
                UserWorkspace.workspace_id == workspace.id,
            )
        )
        record_workspace_event(
            session,
            workspace_id=workspace.id,
            event_type="member_removed",
            payload={"removed_by": context.user_id, "member_id": member_id, "role": removed_role},
        )
        session.commit()

    record_membership_mutation(operation=OPERATION_REMOVE_MEMBER, outcome="allowed")
    logger.info(
        "member_removed",
        workspace_id=workspace.id,
        caller_id=context.user_id,
        member_id=member_id,
        role=removed_role,
    )
    return workspace.id
