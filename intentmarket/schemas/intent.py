# intentmarket/schemas/intent.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from intentmarket.schemas.common import utc

IntentStatus = Literal["active", "completed", "expired"]


def _clean_list(values: list[str]) -> list[str]:
    """Strip entries and drop blanks, keeping order."""
    cleaned: list[str] = []
    for v in values:
        v = v.strip()
        if v:
            cleaned.append(v)
    return cleaned


class IntentCreate(SQLModel):
    """
    Payload for posting a purchase intent.

    Backend derives:
      - user_id from token
      - status = 'active'
      - created_at = now

    budget_min < budget_max (when both given) is enforced by the service
    so that partial updates are checked against the merged result.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = Field(max_length=200)
    timeframe: str = Field(max_length=100)
    budget_min: float | None = Field(default=None, ge=0)
    budget_max: float | None = Field(default=None, ge=0)
    features: list[str] = Field(default_factory=list)
    brands: list[str] = Field(default_factory=list)
    category: str | None = Field(default=None, max_length=50)
    region: str | None = Field(default=None, max_length=50)

    @field_validator("title", "timeframe")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("features", "brands")
    @classmethod
    def normalize_list(cls, v: list[str]) -> list[str]:
        return _clean_list(v)


class IntentUpdate(SQLModel):
    """
    Partial edit by the owner. Fields left out are unchanged.
    Status is not editable here; it moves through purchases only.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=200)
    timeframe: str | None = Field(default=None, max_length=100)
    budget_min: float | None = Field(default=None, ge=0)
    budget_max: float | None = Field(default=None, ge=0)
    features: list[str] | None = None
    brands: list[str] | None = None
    category: str | None = Field(default=None, max_length=50)
    region: str | None = Field(default=None, max_length=50)

    @field_validator("title", "timeframe")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("features", "brands")
    @classmethod
    def normalize_list(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return _clean_list(v)


class IntentRead(SQLModel):
    id: int
    user_id: int
    title: str
    timeframe: str
    budget_min: float | None
    budget_max: float | None
    features: list[str]
    brands: list[str]
    category: str | None
    region: str | None
    status: IntentStatus
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def as_utc(cls, v):
        return utc(v)


class IntentFilter(SQLModel):
    """
    Composite filter for intent listings. All present fields are ANDed.

      - search     : case-insensitive substring of title or any feature
      - budget_min / budget_max : range overlap with the intent's budget,
                     missing intent bounds are treated as unbounded
    """

    model_config = ConfigDict(extra="forbid")

    user_id: int | None = None
    status: IntentStatus | None = None
    category: str | None = None
    region: str | None = None
    search: str | None = None
    budget_min: float | None = Field(default=None, ge=0)
    budget_max: float | None = Field(default=None, ge=0)

    @field_validator("search")
    @classmethod
    def normalize_search(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def check_budget_range(self) -> "IntentFilter":
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_min > self.budget_max
        ):
            raise ValueError("budget_min cannot exceed budget_max")
        return self
