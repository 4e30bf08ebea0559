"""Pydantic schemas for workspace management API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class WorkspaceCreateRequest(BaseModel):
    name: str = Field(min_length=3, max_length=120)
    owner_email: EmailStr
    owner_username: str = Field(min_length=2, max_length=80)
    owner_password: str = Field(min_length=8, max_length=255)


class WorkspaceCreateResponse(BaseModel):
    workspace_id: str
    name: str
    owner_user_id: str
    owner_role: str


class WorkspaceResponse(BaseModel):
    id: str
    name: str
    owner_id: Optional[str]
    default_role: str
    allow_member_invites: bool
    created_at: str
    my_role: str


class WorkspaceSettingsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_name: str = Field(alias="workspaceName")
    default_role: str = Field(alias="defaultRole")
    allow_member_invites: bool = Field(alias="allowMemberInvites")


class WorkspaceSettingsUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    model_config = ConfigDict(populate_by_name=True)

    workspace_name: Optional[str] = Field(default=None, alias="workspaceName", min_length=3, max_length=120)
    default_role: Optional[str] = Field(default=None, alias="defaultRole")
    allow_member_invites: Optional[bool] = Field(default=None, alias="allowMemberInvites")
