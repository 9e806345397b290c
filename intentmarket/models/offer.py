# intentmarket/models/offer.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Offer(SQLModel, table=True):
    """
    A producer's priced response to one intent.

    Lifecycle:
      pending -> accepted | declined | expired

    accepted / declined / expired are terminal.
    """

    __tablename__ = "offers"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    intent_id: int = Field(
        foreign_key="intents.id",
        index=True,
    )

    producer_id: int = Field(
        foreign_key="users.id",
        index=True,
    )

    company: str = Field(max_length=200)
    product: str = Field(description="Product description")

    price: float = Field(gt=0)

    # Must be greater than price when present (discount source)
    original_price: float | None = Field(default=None, gt=0)

    # Client-supplied label, only shown when no percentage can be derived
    discount: str | None = Field(default=None, max_length=100)

    expires_at: datetime | None = None

    # pending | accepted | declined | expired
    status: str = Field(
        default="pending",
        index=True,
        description="Offer status lifecycle",
    )

    accepted_at: datetime | None = None
    declined_at: datetime | None = None
    decline_reason: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
