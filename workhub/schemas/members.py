"""Pydantic schemas for the workspace member endpoints.

Responses use the ``{success, message, data}`` envelope; failures are rendered
by the application exception handlers as ``{success: false, error}``.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field


DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    success: bool = True
    message: str
    data: Optional[DataT] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str


class RoleUpdateRequest(BaseModel):
    # Validated against the role set by the service so bad values map to 400.
    role: Optional[Any] = None


class MemberAddRequest(BaseModel):
    email: EmailStr
    role: Optional[str] = None


class SwitchWorkspaceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")


class MemberItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    member_id: str = Field(alias="memberId")
    username: str
    email: str
    role: str
    joined_at: str = Field(alias="joinedAt")


class WorkspaceItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    member_count: int = Field(alias="memberCount")
    user_role: str = Field(alias="userRole")
    is_owner: bool = Field(alias="isOwner")
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class SwitchWorkspaceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field(alias="workspaceId")
    role: str
    access_token: str = Field(alias="accessToken")
    expires_in: int = Field(alias="expiresIn")
