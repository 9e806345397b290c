# intentmarket/database.py
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from intentmarket.core.config import Settings, get_settings
from intentmarket.repositories.base import Storage
from intentmarket.repositories.intent_repo import SqlIntentRepository
from intentmarket.repositories.memory import memory_storage, shared_memory_database
from intentmarket.repositories.offer_repo import SqlOfferRepository
from intentmarket.repositories.purchase_repo import SqlPurchaseRepository
from intentmarket.repositories.user_repo import SqlUserRepository

settings = get_settings()


def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for DATABASE_URL.

    - SQLite (local dev): allow use from FastAPI's worker threads
    - Postgres: bounded pool, pre-ping, optional sslmode
    """
    db_url = settings.DATABASE_URL

    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

    # Append sslmode if requested and not already present
    if settings.DATABASE_SSLMODE and "sslmode=" not in db_url:
        sep = "&" if "?" in db_url else "?"
        db_url = f"{db_url}{sep}sslmode={settings.DATABASE_SSLMODE}"

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


engine = build_engine(settings)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


def sql_storage(session: Session) -> Storage:
    """Bundle the relational repositories around one request-scoped session."""
    return Storage(
        users=SqlUserRepository(session),
        intents=SqlIntentRepository(session),
        offers=SqlOfferRepository(session),
        purchases=SqlPurchaseRepository(session),
    )


def get_storage() -> Iterator[Storage]:
    """
    FastAPI dependency that yields the configured storage backend.

    Usage:

        @router.get("/example")
        def example_endpoint(storage: Storage = Depends(get_storage)):
            ...
    """
    if settings.STORAGE_BACKEND == "memory":
        yield memory_storage(shared_memory_database())
        return

    with Session(engine) as session:
        yield sql_storage(session)
