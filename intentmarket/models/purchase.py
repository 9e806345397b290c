# intentmarket/models/purchase.py
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Purchase(SQLModel, table=True):
    """
    Immutable ledger entry for a completed intent.

    - One purchase per intent (unique intent_id).
    - offer_id is null when the deal happened outside the offer flow.
    - details is the JSON dump of schemas.purchase.PurchaseDetails.
    """

    __tablename__ = "purchases"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    intent_id: int = Field(
        foreign_key="intents.id",
        unique=True,
        index=True,
    )

    offer_id: int | None = Field(
        default=None,
        foreign_key="offers.id",
        index=True,
    )

    user_id: int = Field(
        foreign_key="users.id",
        index=True,
    )

    details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Completion timestamp (UTC)",
    )
