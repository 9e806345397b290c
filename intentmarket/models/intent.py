# intentmarket/models/intent.py
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Intent(SQLModel, table=True):
    """
    A consumer's declared purchase need.

    Lifecycle:
      active -> completed (a purchase was recorded against it)
      active -> expired   (externally triggered)

    The owning user never changes.
    """

    __tablename__ = "intents"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    user_id: int = Field(
        foreign_key="users.id",
        index=True,
    )

    title: str = Field(
        max_length=200,
        description="What the consumer wants to buy",
    )

    # e.g. "Within 2 weeks", "ASAP"
    timeframe: str = Field(
        max_length=100,
        description="Free-text urgency",
    )

    budget_min: float | None = Field(default=None, ge=0)
    budget_max: float | None = Field(default=None, ge=0)

    features: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    brands: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    category: str | None = Field(default=None, index=True)
    region: str | None = Field(default=None, index=True)

    # active | completed | expired
    status: str = Field(
        default="active",
        index=True,
        description="Intent status lifecycle",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
