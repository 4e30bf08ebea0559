from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional
import uuid

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import workhub.api.main as api_main
from workhub.core.config import get_settings
from workhub.core.metrics import reset_metrics_for_tests
from workhub.storage.db import Base, get_session, load_models
from workhub.workspaces.service import add_workspace_member


PASSWORD = "correct-horse-123"


@dataclass
class SeededUser:
    user_id: str
    email: str
    username: str
    token: str = ""


@dataclass
class MembershipTestContext:
    client: TestClient
    session_factory: sessionmaker
    workspace_id: str
    users: Dict[str, SeededUser] = field(default_factory=dict)

    def headers(self, name: str, *, workspace_id: Optional[str] = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.users[name].token}"}
        if workspace_id is not None:
            headers["x-workspace-id"] = workspace_id
        return headers

    def login(self, name: str, workspace_id: str) -> str:
        response = self.client.post(
            "/auth/login",
            json={"email": self.users[name].email, "password": PASSWORD, "workspace_id": workspace_id},
        )
        assert response.status_code == 200, response.text
        return response.json()["access_token"]

    def signup(self, name: str) -> SeededUser:
        suffix = uuid.uuid4().hex[:8]
        response = self.client.post(
            "/auth/signup",
            json={"email": f"{name.lower()}-{suffix}@workhub.io", "username": f"{name.lower()}-{suffix}", "password": PASSWORD},
        )
        assert response.status_code == 201, response.text
        payload = response.json()
        user = SeededUser(user_id=payload["user_id"], email=payload["email"], username=payload["username"])
        self.users[name] = user
        return user

    def create_workspace(self, name: str, owner: str) -> str:
        suffix = uuid.uuid4().hex[:8]
        response = self.client.post(
            "/workspaces",
            json={
                "name": f"{name}-{suffix}",
                "owner_email": f"{owner.lower()}-{suffix}@workhub.io",
                "owner_username": f"{owner.lower()}-{suffix}",
                "owner_password": PASSWORD,
            },
        )
        assert response.status_code == 201, response.text
        payload = response.json()
        self.users[owner] = SeededUser(
            user_id=payload["owner_user_id"],
            email=f"{owner.lower()}-{suffix}@workhub.io",
            username=f"{owner.lower()}-{suffix}",
        )
        return payload["workspace_id"]

    def add_member(self, name: str, workspace_id: str, role: str) -> None:
        with self.session_factory() as session:
            add_workspace_member(session, workspace_id=workspace_id, user_id=self.users[name].user_id, role=role)


def build_sqlite_session_factory() -> sessionmaker:
    load_models()
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def session_factory(monkeypatch) -> sessionmaker:
    monkeypatch.setenv("SECRET_KEY", "workhub-test-secret-key-0123456789abcdef")
    get_settings.cache_clear()
    yield build_sqlite_session_factory()
    get_settings.cache_clear()


@pytest.fixture
def api_client(session_factory) -> TestClient:
    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    reset_metrics_for_tests()
    api_main.app.dependency_overrides[get_session] = override_get_session
    try:
        yield TestClient(api_main.app)
    finally:
        api_main.app.dependency_overrides.clear()


@pytest.fixture
def membership_ctx(api_client, session_factory) -> MembershipTestContext:
    """Workspace W with Owner A, Admin B and Member C, each logged into W."""

    ctx = MembershipTestContext(client=api_client, session_factory=session_factory, workspace_id="")
    ctx.workspace_id = ctx.create_workspace("workspace-w", "A")
    ctx.signup("B")
    ctx.signup("C")
    ctx.add_member("B", ctx.workspace_id, "Admin")
    ctx.add_member("C", ctx.workspace_id, "Member")
    for name in ("A", "B", "C"):
        ctx.users[name].token = ctx.login(name, ctx.workspace_id)
    return ctx
