# intentmarket/schemas/purchase.py
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from intentmarket.schemas.common import utc


class PurchaseDetails(SQLModel):
    """
    Free-form purchase payload.

    Known optional fields are typed; anything else goes into `extra`,
    an opaque JSON object stored as-is.
    """

    model_config = ConfigDict(extra="forbid")

    price: float | None = Field(default=None, ge=0)
    company: str | None = None
    product: str | None = None
    notes: str | None = None
    extra: dict[str, Any] | None = None


class PurchaseCreate(SQLModel):
    """
    Record a completed purchase against one of the caller's intents.

    Side effects (atomic):
      - intent.status -> 'completed'
      - offer.status  -> 'accepted' (when offer_id is given)
    """

    model_config = ConfigDict(extra="forbid")

    intent_id: int
    offer_id: int | None = None
    details: PurchaseDetails | None = None


class PurchaseRead(SQLModel):
    id: int
    intent_id: int
    offer_id: int | None
    user_id: int
    details: PurchaseDetails | None
    completed_at: datetime

    @field_validator("completed_at")
    @classmethod
    def as_utc(cls, v):
        return utc(v)


class PurchaseFilter(SQLModel):
    model_config = ConfigDict(extra="forbid")

    user_id: int | None = None
    intent_id: int | None = None
