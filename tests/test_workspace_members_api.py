from __future__ import annotations

import json

import pytest
from sqlalchemy import select

import workhub.workspaces.members as members_module
from workhub.core.config import get_settings
from workhub.storage.models import UserWorkspace, WorkspaceEvent, WorkspaceMember


def _member_roles(ctx) -> dict[str, str]:
    with ctx.session_factory() as session:
        rows = session.scalars(
            select(WorkspaceMember).where(WorkspaceMember.workspace_id == ctx.workspace_id)
        ).all()
        return {row.member_id: row.role for row in rows}


def _user_workspace_ids(ctx, user_id: str) -> list[str]:
    with ctx.session_factory() as session:
        return list(
            session.scalars(select(UserWorkspace.workspace_id).where(UserWorkspace.user_id == user_id)).all()
        )


def test_admin_promotes_member_to_admin(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.put(
        f"/workspace/members/{ctx.users['C'].user_id}",
        json={"role": "Admin"},
        headers=ctx.headers("B"),
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Member role updated successfully"}
    roles = _member_roles(ctx)
    assert roles[ctx.users["C"].user_id] == "Admin"
    assert roles[ctx.users["A"].user_id] == "Owner"
    assert roles[ctx.users["B"].user_id] == "Admin"


def test_role_change_is_idempotent(membership_ctx) -> None:
    ctx = membership_ctx
    url = f"/workspace/members/{ctx.users['C'].user_id}"

    first = ctx.client.put(url, json={"role": "Admin"}, headers=ctx.headers("A"))
    second = ctx.client.put(url, json={"role": "Admin"}, headers=ctx.headers("A"))

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert _member_roles(ctx)[ctx.users["C"].user_id] == "Admin"


def test_admin_cannot_demote_owner(membership_ctx) -> None:
    ctx = membership_ctx
    before = _member_roles(ctx)

    response = ctx.client.put(
        f"/workspace/members/{ctx.users['A'].user_id}",
        json={"role": "Member"},
        headers=ctx.headers("B"),
    )

    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "error": "Only the workspace owner can change the owner's role",
    }
    assert _member_roles(ctx) == before


@pytest.mark.parametrize("role", ["admin", "Guest", "", None, 7])
def test_invalid_role_is_rejected_without_write(membership_ctx, role) -> None:
    ctx = membership_ctx
    before = _member_roles(ctx)

    response = ctx.client.put(
        f"/workspace/members/{ctx.users['C'].user_id}",
        json={"role": role},
        headers=ctx.headers("A"),
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid role"}
    assert _member_roles(ctx) == before


def test_missing_body_is_invalid_role(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.put(f"/workspace/members/{ctx.users['C'].user_id}", headers=ctx.headers("A"))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid role"


def test_member_caller_is_forbidden_for_both_operations(membership_ctx) -> None:
    ctx = membership_ctx
    target = ctx.users["B"].user_id

    update = ctx.client.put(f"/workspace/members/{target}", json={"role": "Member"}, headers=ctx.headers("C"))
    remove = ctx.client.delete(f"/workspace/members/{target}", headers=ctx.headers("C"))

    assert update.status_code == 403
    assert update.json()["error"] == "You don't have permission to update member roles"
    assert remove.status_code == 403
    assert remove.json()["error"] == "You don't have permission to remove members"


def test_self_role_change_is_rejected(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.put(
        f"/workspace/members/{ctx.users['B'].user_id}",
        json={"role": "Owner"},
        headers=ctx.headers("B"),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "You cannot change your own role"


def test_role_change_for_unknown_member_is_not_found(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.put(
        "/workspace/members/00000000-0000-0000-0000-000000000000",
        json={"role": "Admin"},
        headers=ctx.headers("A"),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Member not found in workspace"


def test_owner_removes_admin_from_both_lists(membership_ctx) -> None:
    ctx = membership_ctx
    admin_id = ctx.users["B"].user_id

    response = ctx.client.delete(f"/workspace/members/{admin_id}", headers=ctx.headers("A"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Member removed from workspace successfully"}
    assert admin_id not in _member_roles(ctx)
    assert ctx.workspace_id not in _user_workspace_ids(ctx, admin_id)

    with ctx.session_factory() as session:
        events = session.scalars(
            select(WorkspaceEvent).where(
                WorkspaceEvent.workspace_id == ctx.workspace_id,
                WorkspaceEvent.event_type == "member_removed",
            )
        ).all()
    assert len(events) == 1
    assert json.loads(events[0].payload_json)["member_id"] == admin_id


def test_self_removal_is_rejected_without_write(membership_ctx) -> None:
    ctx = membership_ctx
    admin_id = ctx.users["B"].user_id
    before = _member_roles(ctx)

    response = ctx.client.delete(f"/workspace/members/{admin_id}", headers=ctx.headers("B"))

    assert response.status_code == 400
    assert response.json()["error"] == "You cannot remove yourself from the workspace"
    assert _member_roles(ctx) == before
    assert ctx.workspace_id in _user_workspace_ids(ctx, admin_id)


def test_admin_cannot_remove_owner(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.delete(f"/workspace/members/{ctx.users['A'].user_id}", headers=ctx.headers("B"))

    assert response.status_code == 403
    assert response.json()["error"] == "Only the workspace owner can remove the owner"


def test_remove_unknown_member_is_not_found(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.delete("/workspace/members/not-a-member", headers=ctx.headers("B"))

    assert response.status_code == 404
    assert response.json()["error"] == "Member not found in workspace"


def test_unauthenticated_requests_are_rejected(membership_ctx) -> None:
    ctx = membership_ctx
    target = ctx.users["C"].user_id

    update = ctx.client.put(f"/workspace/members/{target}", json={"role": "Admin"})
    remove = ctx.client.delete(f"/workspace/members/{target}", headers={"Authorization": "Bearer garbage"})

    assert update.status_code == 401
    assert update.json() == {"success": False, "error": "Not authenticated"}
    assert remove.status_code == 401


def test_workspace_header_for_foreign_workspace_is_not_found(membership_ctx) -> None:
    ctx = membership_ctx
    other_workspace = ctx.create_workspace("workspace-x", "X")

    response = ctx.client.delete(
        f"/workspace/members/{ctx.users['C'].user_id}",
        headers=ctx.headers("A", workspace_id=other_workspace),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "No workspace found for user"
    assert ctx.users["C"].user_id in _member_roles(ctx)


def test_workspace_header_selects_between_callers_workspaces(membership_ctx) -> None:
    ctx = membership_ctx
    second = ctx.create_workspace("workspace-v", "V")
    ctx.add_member("A", second, "Admin")
    ctx.add_member("C", second, "Member")

    response = ctx.client.put(
        f"/workspace/members/{ctx.users['C'].user_id}",
        json={"role": "Admin"},
        headers=ctx.headers("A", workspace_id=second),
    )

    assert response.status_code == 200
    assert _member_roles(ctx)[ctx.users["C"].user_id] == "Member"
    with ctx.session_factory() as session:
        role = session.scalar(
            select(WorkspaceMember.role).where(
                WorkspaceMember.workspace_id == second,
                WorkspaceMember.member_id == ctx.users["C"].user_id,
            )
        )
    assert role == "Admin"


def test_owner_grant_restriction_is_configurable(membership_ctx, monkeypatch) -> None:
    ctx = membership_ctx
    url = f"/workspace/members/{ctx.users['C'].user_id}"

    monkeypatch.setenv("OWNER_GRANT_REQUIRES_OWNER", "true")
    get_settings.cache_clear()
    restricted = ctx.client.put(url, json={"role": "Owner"}, headers=ctx.headers("B"))
    assert restricted.status_code == 403
    assert restricted.json()["error"] == "Only the workspace owner can grant the owner role"

    monkeypatch.setenv("OWNER_GRANT_REQUIRES_OWNER", "false")
    get_settings.cache_clear()
    allowed = ctx.client.put(url, json={"role": "Owner"}, headers=ctx.headers("B"))
    assert allowed.status_code == 200
    assert _member_roles(ctx)[ctx.users["C"].user_id] == "Owner"


def test_storage_failure_surfaces_as_internal_error(membership_ctx, monkeypatch) -> None:
    ctx = membership_ctx

    def broken_event(*args, **kwargs):
        raise RuntimeError("connection reset by peer")

    monkeypatch.setattr(members_module, "record_workspace_event", broken_event)
    response = ctx.client.delete(f"/workspace/members/{ctx.users['C'].user_id}", headers=ctx.headers("A"))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert ctx.users["C"].user_id in _member_roles(ctx)
    assert ctx.workspace_id in _user_workspace_ids(ctx, ctx.users["C"].user_id)


def test_list_members_returns_workspace_roster(membership_ctx) -> None:
    ctx = membership_ctx
    response = ctx.client.get("/workspace/members", headers=ctx.headers("C"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    roster = {item["memberId"]: item["role"] for item in payload["data"]}
    assert roster == {
        ctx.users["A"].user_id: "Owner",
        ctx.users["B"].user_id: "Admin",
        ctx.users["C"].user_id: "Member",
    }
    assert all("password_hash" not in item for item in payload["data"])


def test_admin_adds_existing_user_by_email(membership_ctx) -> None:
    ctx = membership_ctx
    newcomer = ctx.signup("D")

    response = ctx.client.post(
        "/workspace/members",
        json={"email": newcomer.email},
        headers=ctx.headers("B"),
    )

    assert response.status_code == 201
    assert response.json()["data"]["role"] == "Member"
    assert _member_roles(ctx)[newcomer.user_id] == "Member"
    assert ctx.workspace_id in _user_workspace_ids(ctx, newcomer.user_id)

    duplicate = ctx.client.post("/workspace/members", json={"email": newcomer.email}, headers=ctx.headers("B"))
    assert duplicate.status_code == 409

    as_member = ctx.client.post(
        "/workspace/members",
        json={"email": ctx.users["A"].email},
        headers=ctx.headers("C"),
    )
    assert as_member.status_code == 403
