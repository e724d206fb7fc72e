"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from sharkband.ledger.types import Role


class RegisterRequest(BaseModel):
    """Member registration. Credentials are handled by the gateway."""

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=128)
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    points: int = 0
    created_at: datetime
