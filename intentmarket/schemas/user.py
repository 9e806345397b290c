# intentmarket/schemas/user.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from intentmarket.schemas.common import utc

Role = Literal["consumer", "producer"]


class UserCreate(SQLModel):
    """
    Registration payload.

    The password is hashed by the service before it reaches storage.
    """

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(max_length=100)
    role: Role

    @field_validator("username", "name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class UserLogin(SQLModel):
    model_config = ConfigDict(extra="forbid")

    username: str
    password: str


class UserRead(SQLModel):
    """Response schema returned to clients (never includes the hash)."""

    id: int
    username: str
    name: str
    role: Role
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def as_utc(cls, v):
        return utc(v)


class TokenRead(SQLModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
