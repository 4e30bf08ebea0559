"""Workspace-scoped DB context for PostgreSQL row-level security."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session


WORKSPACE_SETTING = "app.current_workspace_id"


def set_workspace_context(session: Session, workspace_id: Optional[str]) -> bool:
    """Scope the current transaction to ``workspace_id``.

    Returns False on dialects without RLS support, where this is a no-op.
    """

    bind = session.get_bind()
    if bind is None or bind.dialect.name != "postgresql":
        return False

    session.execute(
        text("SELECT set_config(:setting, :workspace_id, true)"),
        {"setting": WORKSPACE_SETTING, "workspace_id": workspace_id or ""},
    )
    return True
