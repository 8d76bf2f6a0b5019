"""Pydantic schemas for authenticated users and their profile rows."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """User resolved from the caller's session by the auth service."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Auth service user id (UUID).")
    email: str | None = Field(default=None, description="Primary email, if any.")
    user_metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata stored with the account (display name, avatar).",
    )


class Profile(BaseModel):
    """Row of the profiles table, narrowed to the columns the gate reads."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    role: str | None = None


class WhoAmIResponse(BaseModel):
    """Identity of the calling administrator."""

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    role: str | None = None
