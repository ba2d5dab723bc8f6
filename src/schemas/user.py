"""User schema definitions.

This module defines the User data model and the request/response models used
by the authentication and user routes.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal

import pytz
from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator

from config import PASSWORD_MIN_LENGTH

UserRole = Literal["user", "admin"]

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _now() -> str:
    return datetime.now(pytz.utc).isoformat()


class User(BaseModel):
    """A stored user account, including the password hash."""

    user_id: str = Field(
        description="The unique identifier for the user.",
        default_factory=lambda: str(uuid.uuid4()),
        frozen=True,
    )
    name: str
    email: str = Field(description="Lowercased email address.")
    password_hash: str
    role: UserRole = "user"
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)

    def to_summary(self) -> "UserSummary":
        return UserSummary(
            user_id=self.user_id,
            name=self.name,
            email=self.email,
            role=self.role,
            created_at=self.created_at,
        )


class UserSummary(BaseModel):
    """User information safe to return to clients (no password data)."""

    user_id: str
    name: str
    email: str
    role: UserRole
    created_at: str


class RegisterRequest(BaseModel):
    name: NonEmptyStr
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class AuthResponse(BaseModel):
    """Returned by register and login."""

    message: str
    token: str
    user: UserSummary


class CurrentUserResponse(BaseModel):
    user: UserSummary


class UpdateRoleRequest(BaseModel):
    role: UserRole


class UserProfileResponse(BaseModel):
    user: UserSummary
    reported_issues: int = Field(description="Number of issues the user reported.")
    upvoted_issues: int = Field(description="Number of issues the user upvoted.")


class UserListResponse(BaseModel):
    users: List[UserSummary]
