"""
Auth models.

User is the public record returned by every read path. UserCredential adds
the password hash and is produced only by the credential lookup used at login.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field, field_validator

from ..core.schema import CamelModel


Role = Literal["admin", "user"]


class User(CamelModel):
    """User record without credentials."""

    id: str
    name: str
    email: str
    role: Role = "user"
    created_at: datetime
    updated_at: datetime


class UserCredential(User):
    """User record including the bcrypt hash. Never serialized to clients."""

    password_hash: str = Field(repr=False)

    def public(self) -> User:
        return User(**self.model_dump(exclude={"password_hash"}))


class AuthTokens(CamelModel):
    access_token: str
    refresh_token: str


class SignupRequest(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserUpdate(CamelModel):
    """Admin-editable user fields. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
