from __future__ import annotations

from pathlib import Path


def test_membership_migration_declares_tables_and_rls_contract() -> None:
    migration_path = Path("migrations/versions/20261019_0001_workspace_membership.py")
    source = migration_path.read_text(encoding="utf-8")

    assert "\"users\"," in source
    assert "\"workspaces\"," in source
    assert "\"workspace_members\"," in source
    assert "\"user_workspaces\"," in source
    assert "\"workspace_events\"," in source

    assert "uq_workspace_members_workspace_member" in source
    assert "ck_workspace_members_role" in source
    assert "ix_workspace_members_workspace_joined_at" in source
    assert "ix_user_workspaces_user_created_at" in source
    assert "ix_workspace_events_workspace_created_at" in source
    assert "ENABLE ROW LEVEL SECURITY" in source
    assert "FORCE ROW LEVEL SECURITY" in source
    assert "app_current_workspace_id" in source
