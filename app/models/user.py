"""User model definitions."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator


class Role(str, Enum):
    """Account roles."""

    ADMIN = "admin"
    EDUCATOR = "educator"
    PSYCHOLOGIST = "psychologist"
    PARENT = "parent"
    STUDENT = "student"


class UserBase(BaseModel):
    """Base user fields."""

    email: EmailStr
    name: str = Field(min_length=1, max_length=100)


class UserCreate(UserBase):
    """User registration model with password."""

    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.EDUCATOR

    @field_validator("role")
    @classmethod
    def reject_admin(cls, v: Role) -> Role:
        if v == Role.ADMIN:
            raise ValueError("admin role cannot be self-assigned")
        return v


class RoleUpdate(BaseModel):
    """Role change request (admin only)."""

    role: Role


class User(UserBase):
    """User model without password (for API responses)."""

    id: str = Field(alias="_id", serialization_alias="id")
    role: Role
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
