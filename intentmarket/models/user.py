# intentmarket/models/user.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Marketplace account.

    Role:
      - "consumer" posts intents and accepts/declines offers
      - "producer" browses intents and submits offers

    `password` holds the argon2 hash, never the plain text.
    Users are never deleted.
    """

    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    username: str = Field(
        max_length=50,
        unique=True,
        index=True,
        description="Login name (unique)",
    )

    password: str = Field(
        description="Hashed credential",
    )

    name: str = Field(
        max_length=100,
        description="Display name",
    )

    # consumer | producer
    role: str = Field(
        index=True,
        description="Application role: consumer | producer",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
