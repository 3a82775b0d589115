"""Pydantic schemas for account endpoints."""
import re
from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from core.request_context import Role

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def normalize_email(value: str) -> str:
    """Trim and lower-case an email address, rejecting malformed ones."""
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email address")
    return email


# Trimmed, lower-cased and shape-checked email address
Email = Annotated[str, Field(max_length=255), AfterValidator(normalize_email)]


class RegisterRequest(BaseModel):
    """Schema for creating an account."""

    email: Email
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    confirm_password: str = Field(..., max_length=128)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        """Reject mismatched password confirmation."""
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Schema for signing in."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        """Emails are stored lower-cased."""
        return value.strip().lower()


class ForgotPasswordRequest(BaseModel):
    """Schema for requesting a password reset."""

    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        """Emails are stored lower-cased."""
        return value.strip().lower()


class UserResponse(BaseModel):
    """Public view of a customer."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None
    role: str


class AuthResponse(BaseModel):
    """Response for register, login and me."""

    success: bool = True
    user: UserResponse


class MessageResponse(BaseModel):
    """Generic success message."""

    success: bool = True
    message: str


class UserRoleUpdate(BaseModel):
    """Schema for an admin changing a customer's role."""

    role: Role


class AdminUserResponse(UserResponse):
    """A customer as listed in the back office."""

    created_at: datetime


class AdminUserListResponse(BaseModel):
    """Paginated customers, newest first."""

    items: list[AdminUserResponse]
    total: int
    offset: int
    limit: int
