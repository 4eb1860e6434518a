from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from ..dishes.models import reject_explicit_nulls
from ..pagination import Pagination

Role = Literal["guest", "admin"]

USER_SORT_KEYS = ("created_at", "username", "name")

USERNAME_PATTERN = r"^[A-Za-z0-9_.\-]+$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    role: Role = "guest"
    is_locked: bool = False


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    password: str | None = Field(default=None, min_length=6)
    role: Role | None = None
    is_locked: bool | None = None

    @model_validator(mode="after")
    def _no_nulls(self) -> "UserUpdate":
        reject_explicit_nulls(self)
        return self


class RoleUpdate(BaseModel):
    role: Role


class UserOut(BaseModel):
    id: str
    username: str
    name: str
    email: str
    role: str
    is_locked: bool
    favorite_count: int
    status: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None


class UserListResponse(BaseModel):
    users: list[UserOut]
    pagination: Pagination
