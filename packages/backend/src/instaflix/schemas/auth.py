"""Pydantic schemas for registration, login and the current user.

Request bodies validate shape only; uniqueness and credential checks
happen in the services.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# ─── Requests ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    username: Optional[str] = Field(
        None, min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$"
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ─── Responses ────────────────────────────────────────────


class PrincipalRead(BaseModel):
    id: uuid.UUID
    username: Optional[str]
    email: str
    avatar_url: Optional[str] = None
    role: str

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    """A principal plus a freshly issued session token."""
    id: uuid.UUID
    username: Optional[str]
    email: str
    avatar_url: Optional[str] = None
    token: str
    token_type: str = "bearer"
    expires_in: int
