"""Pydantic schemas for authentication API."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=2, max_length=80)
    password: str = Field(min_length=8, max_length=255)


class SignupResponse(BaseModel):
    user_id: str
    email: str
    username: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)
    workspace_id: str = Field(min_length=36, max_length=36)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    workspace_id: str
    role: str
