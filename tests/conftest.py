import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

# Must be set before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "database"

from intentmarket.database import create_db_and_tables, get_storage, sql_storage  # noqa: E402
from intentmarket.main import app  # noqa: E402
from intentmarket.models.offer import Offer  # noqa: E402
from intentmarket.repositories.memory import MemoryDatabase, memory_storage  # noqa: E402
from intentmarket.schemas.intent import IntentCreate  # noqa: E402
from intentmarket.schemas.offer import OfferCreate  # noqa: E402
from intentmarket.schemas.user import UserCreate  # noqa: E402
from intentmarket.services.intent_service import IntentService  # noqa: E402
from intentmarket.services.offer_service import OfferService  # noqa: E402
from intentmarket.services.user_service import UserService  # noqa: E402


@pytest.fixture
def engine():
    """
    Fresh in-memory SQLite database per test.
    StaticPool keeps every session (and TestClient worker thread) on the
    same connection, so the schema stays visible.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["sql", "memory"])
def storage(request, engine):
    """Run storage-level and service-level tests against both backends."""
    if request.param == "memory":
        yield memory_storage(MemoryDatabase())
        return
    with Session(engine) as session:
        yield sql_storage(session)


@pytest.fixture
def client(engine):
    """
    TestClient bound to the app with get_storage pointed at the test DB.
    Lifespan is not run, so the configured DATABASE_URL is never touched.
    """

    def _get_storage():
        with Session(engine) as session:
            yield sql_storage(session)

    app.dependency_overrides[get_storage] = _get_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----- Factories -----


@pytest.fixture
def make_user(storage):
    """Factory fixture registering users through the service."""

    def _make_user(role: str = "consumer", password: str = "secret123"):
        username = f"{role}_{uuid.uuid4().hex[:6]}"
        return UserService().register(
            storage,
            UserCreate(username=username, password=password, name=username.title(), role=role),
        )

    return _make_user


@pytest.fixture
def make_intent(storage):
    def _make_intent(owner, **overrides):
        data = {
            "title": "Laptop",
            "timeframe": "Within 2 weeks",
            "budget_min": 1000,
            "budget_max": 1500,
            "features": ["16GB RAM"],
        }
        data.update(overrides)
        return IntentService().create_intent(storage, owner, IntentCreate(**data))

    return _make_intent


@pytest.fixture
def make_offer(storage):
    def _make_offer(producer, intent_id: int, **overrides):
        data = {
            "intent_id": intent_id,
            "company": "Acme",
            "product": "Acme Book 15",
            "price": 1200,
            "original_price": 1400,
        }
        data.update(overrides)
        return OfferService().create_offer(storage, producer, OfferCreate(**data))

    return _make_offer


@pytest.fixture
def make_raw_offer(storage):
    """Insert an offer directly, bypassing the service checks (e.g. past expiry)."""

    def _make_raw_offer(producer_id: int, intent_id: int, **overrides):
        offer = Offer(
            intent_id=intent_id,
            producer_id=producer_id,
            company=overrides.pop("company", "Acme"),
            product=overrides.pop("product", "Widget"),
            price=overrides.pop("price", 100.0),
            **overrides,
        )
        return storage.offers.create(offer)

    return _make_raw_offer


@pytest.fixture
def api_user(client):
    """
    Register + log in through the HTTP API.
    Returns (user_json, auth_headers).
    """

    def _api_user(role: str = "consumer", password: str = "secret123"):
        username = f"{role}_{uuid.uuid4().hex[:6]}"
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": username, "password": password, "name": "Test", "role": role},
        )
        assert resp.status_code == 201, resp.text
        login = client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": password},
        )
        assert login.status_code == 200, login.text
        body = login.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _api_user
