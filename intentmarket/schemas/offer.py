# intentmarket/schemas/offer.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from intentmarket.schemas.common import utc

OfferStatus = Literal["pending", "accepted", "declined", "expired"]


class OfferCreate(SQLModel):
    """
    Payload for submitting an offer on an intent.

    Backend derives:
      - producer_id from token (never from the body)
      - status = 'pending'
    """

    model_config = ConfigDict(extra="forbid")

    intent_id: int
    company: str = Field(max_length=200)
    product: str
    price: float = Field(gt=0)
    original_price: float | None = Field(default=None, gt=0)
    discount: str | None = Field(default=None, max_length=100)
    expires_at: datetime | None = None

    @field_validator("company", "product")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OfferUpdate(SQLModel):
    """
    Producer edits before the offer reaches a terminal state.
    """

    model_config = ConfigDict(extra="forbid")

    company: str | None = Field(default=None, max_length=200)
    product: str | None = None
    price: float | None = Field(default=None, gt=0)
    original_price: float | None = Field(default=None, gt=0)
    discount: str | None = Field(default=None, max_length=100)
    expires_at: datetime | None = None

    @field_validator("company", "product")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OfferDecline(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=500)


class OfferMessage(SQLModel):
    model_config = ConfigDict(extra="forbid")

    message: str = ""


class MessageReceipt(SQLModel):
    success: bool
    message: str
    timestamp: datetime


class OfferRead(SQLModel):
    """
    Offer as returned to clients.

    `discount` is derived on read from original_price/price
    (e.g. "14% off"); the stored label is only used when no
    original_price is set.
    """

    id: int
    intent_id: int
    producer_id: int
    company: str
    product: str
    price: float
    original_price: float | None
    discount: str | None
    expires_at: datetime | None
    status: OfferStatus
    accepted_at: datetime | None
    declined_at: datetime | None
    decline_reason: str | None
    created_at: datetime

    @field_validator("expires_at", "accepted_at", "declined_at", "created_at")
    @classmethod
    def as_utc(cls, v):
        return utc(v)


class OfferFilter(SQLModel):
    model_config = ConfigDict(extra="forbid")

    intent_id: int | None = None
    producer_id: int | None = None
    status: OfferStatus | None = None
