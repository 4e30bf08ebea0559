"""Role table for workspace membership mutations.

Pure functions with no database access. Each evaluator walks the checks in a
fixed order and returns the first denial, so callers can rely on the reported
reason being stable for a given input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from workhub.core.errors import ErrorKind


class WorkspaceRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"


MANAGING_ROLES = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN})

INVALID_ROLE = "Invalid role"
CANNOT_UPDATE_ROLES = "You don't have permission to update member roles"
ONLY_OWNER_CHANGES_OWNER = "Only the workspace owner can change the owner's role"
CANNOT_CHANGE_OWN_ROLE = "You cannot change your own role"
ONLY_OWNER_GRANTS_OWNER = "Only the workspace owner can grant the owner role"
CANNOT_REMOVE_MEMBERS = "You don't have permission to remove members"
MEMBER_NOT_FOUND = "Member not found in workspace"
ONLY_OWNER_REMOVES_OWNER = "Only the workspace owner can remove the owner"
CANNOT_REMOVE_SELF = "You cannot remove yourself from the workspace"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    kind: Optional[ErrorKind] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, kind: ErrorKind, reason: str) -> Decision:
        return cls(allowed=False, kind=kind, reason=reason)


def parse_role(value: object) -> Optional[WorkspaceRole]:
    """Return the role for an exact wire value, or None."""

    if isinstance(value, WorkspaceRole):
        return value
    if not isinstance(value, str):
        return None
    try:
        return WorkspaceRole(value)
    except ValueError:
        return None


def coerce_role(value: object) -> WorkspaceRole:
    """Stored roles outside the role set are treated as Member."""

    return parse_role(value) or WorkspaceRole.MEMBER


def check_requested_role(requested_role: object) -> Decision:
    if parse_role(requested_role) is None:
        return Decision.deny(ErrorKind.INVALID_INPUT, INVALID_ROLE)
    return Decision.allow()


def _can_manage(caller_role: Optional[WorkspaceRole]) -> bool:
    return caller_role in MANAGING_ROLES


def evaluate_role_change(
    caller_role: Optional[WorkspaceRole],
    target_role: Optional[WorkspaceRole],
    is_self: bool,
    requested_role: object,
    *,
    owner_grant_requires_owner: bool = False,
) -> Decision:
    """Decide whether the caller may set a member's role.

    ``caller_role`` is None when the caller has no membership in the workspace
    and ``target_role`` is None when the target is not a member; a missing
    target is allowed here and surfaces as not-found when the update matches
    no row.
    """

    decision = check_requested_role(requested_role)
    if not decision.allowed:
        return decision
    if not _can_manage(caller_role):
        return Decision.deny(ErrorKind.FORBIDDEN, CANNOT_UPDATE_ROLES)
    if target_role is WorkspaceRole.OWNER and caller_role is not WorkspaceRole.OWNER:
        return Decision.deny(ErrorKind.FORBIDDEN, ONLY_OWNER_CHANGES_OWNER)
    if is_self:
        return Decision.deny(ErrorKind.INVALID_INPUT, CANNOT_CHANGE_OWN_ROLE)
    if (
        owner_grant_requires_owner
        and parse_role(requested_role) is WorkspaceRole.OWNER
        and caller_role is not WorkspaceRole.OWNER
    ):
        return Decision.deny(ErrorKind.FORBIDDEN, ONLY_OWNER_GRANTS_OWNER)
    return Decision.allow()


def evaluate_member_removal(
    caller_role: Optional[WorkspaceRole],
    target_role: Optional[WorkspaceRole],
    is_self: bool,
) -> Decision:
    if not _can_manage(caller_role):
        return Decision.deny(ErrorKind.FORBIDDEN, CANNOT_REMOVE_MEMBERS)
    if target_role is None:
        return Decision.deny(ErrorKind.NOT_FOUND, MEMBER_NOT_FOUND)
    if target_role is WorkspaceRole.OWNER and caller_role is not WorkspaceRole.OWNER:
        return Decision.deny(ErrorKind.FORBIDDEN, ONLY_OWNER_REMOVES_OWNER)
    if is_self:
        return Decision.deny(ErrorKind.INVALID_INPUT, CANNOT_REMOVE_SELF)
    return Decision.allow()
