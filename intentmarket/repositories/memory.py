# intentmarket/repositories/memory.py
"""
In-process storage backend.

Rows live in plain dicts keyed by id and are copied on every read and
write, so callers never hold references into the store (same snapshot
semantics as rows read from a database). One lock serializes all
access; compound operations (guarded offer updates, purchase creation)
check and apply under a single acquisition.
"""
import copy
import itertools
import threading
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, TypeVar

from intentmarket.core.errors import Conflict
from intentmarket.models.intent import Intent
from intentmarket.models.offer import Offer
from intentmarket.models.purchase import Purchase
from intentmarket.models.user import User
from intentmarket.repositories.base import (
    INTENT_REFERENCED,
    IntentRepository,
    OfferRepository,
    PurchaseRepository,
    Storage,
    UserRepository,
    intent_matches,
    offer_matches,
    purchase_matches,
)
from intentmarket.schemas.intent import IntentFilter
from intentmarket.schemas.offer import OfferFilter
from intentmarket.schemas.purchase import PurchaseFilter

T = TypeVar("T")


class MemoryDatabase:
    """Shared state for the in-memory repositories."""

    def __init__(self):
        self.lock = threading.RLock()
        self.users: dict[int, dict[str, Any]] = {}
        self.intents: dict[int, dict[str, Any]] = {}
        self.offers: dict[int, dict[str, Any]] = {}
        self.purchases: dict[int, dict[str, Any]] = {}
        # ids are never reused, even after deletes
        self._counters = {
            "users": itertools.count(1),
            "intents": itertools.count(1),
            "offers": itertools.count(1),
            "purchases": itertools.count(1),
        }

    def next_id(self, table: str) -> int:
        return next(self._counters[table])


def _snapshot(row: dict[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(row)


def _past_expiry(row: dict[str, Any], now: datetime) -> bool:
    expires_at = row.get("expires_at")
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= now


def _newest_first(rows: list[T], stamp: Callable[[T], datetime]) -> list[T]:
    return sorted(rows, key=lambda r: (stamp(r), r.id), reverse=True)


class MemoryUserRepository(UserRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    def get_by_id(self, user_id: int) -> User | None:
        with self.db.lock:
            row = self.db.users.get(user_id)
            return User(**_snapshot(row)) if row else None

    def get_by_username(self, username: str) -> User | None:
        with self.db.lock:
            for row in self.db.users.values():
                if row["username"] == username:
                    return User(**_snapshot(row))
        return None

    def create(self, user: User) -> User:
        with self.db.lock:
            if any(r["username"] == user.username for r in self.db.users.values()):
                raise Conflict("Conflicting record already exists")
            row = user.model_dump()
            row["id"] = self.db.next_id("users")
            self.db.users[row["id"]] = row
            return User(**_snapshot(row))


class MemoryIntentRepository(IntentRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    def list_all(self, filters: IntentFilter | None = None) -> list[Intent]:
        filters = filters or IntentFilter()
        with self.db.lock:
            rows = [Intent(**_snapshot(r)) for r in self.db.intents.values()]
        return _newest_first(
            [i for i in rows if intent_matches(i, filters)],
            lambda i: i.created_at,
        )

    def get_by_id(self, intent_id: int) -> Intent | None:
        with self.db.lock:
            row = self.db.intents.get(intent_id)
            return Intent(**_snapshot(row)) if row else None

    def create(self, intent: Intent) -> Intent:
        with self.db.lock:
            row = intent.model_dump()
            row["id"] = self.db.next_id("intents")
            row["status"] = "active"
            row["created_at"] = datetime.now(timezone.utc)
            self.db.intents[row["id"]] = row
            return Intent(**_snapshot(row))

    def update(self, intent_id: int, changes: dict[str, Any]) -> Intent | None:
        with self.db.lock:
            row = self.db.intents.get(intent_id)
            if row is None:
                return None
            row.update(copy.deepcopy(changes))
            return Intent(**_snapshot(row))

    def delete(self, intent_id: int) -> bool:
        with self.db.lock:
            if intent_id not in self.db.intents:
                return False
            referenced = any(
                r["intent_id"] == intent_id
                for r in itertools.chain(self.db.offers.values(), self.db.purchases.values())
            )
            if referenced:
                raise Conflict(INTENT_REFERENCED)
            del self.db.intents[intent_id]
            return True


class MemoryOfferRepository(OfferRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    def list_all(self, filters: OfferFilter | None = None) -> list[Offer]:
        filters = filters or OfferFilter()
        with self.db.lock:
            rows = [Offer(**_snapshot(r)) for r in self.db.offers.values()]
        return _newest_first(
            [o for o in rows if offer_matches(o, filters)],
            lambda o: o.created_at,
        )

    def get_by_id(self, offer_id: int) -> Offer | None:
        with self.db.lock:
            row = self.db.offers.get(offer_id)
            return Offer(**_snapshot(row)) if row else None

    def create(self, offer: Offer) -> Offer:
        with self.db.lock:
            if offer.intent_id not in self.db.intents:
                raise Conflict("Referenced intent does not exist")
            row = offer.model_dump()
            row["id"] = self.db.next_id("offers")
            row["status"] = "pending"
            row["created_at"] = datetime.now(timezone.utc)
            self.db.offers[row["id"]] = row
            return Offer(**_snapshot(row))

    def update(
        self,
        offer_id: int,
        changes: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> Offer | None:
        with self.db.lock:
            row = self.db.offers.get(offer_id)
            if row is None:
                return None
            if expected_status is not None and row["status"] != expected_status:
                return None
            row.update(copy.deepcopy(changes))
            return Offer(**_snapshot(row))

    def delete(self, offer_id: int, *, expected_status: str | None = None) -> bool:
        with self.db.lock:
            row = self.db.offers.get(offer_id)
            if row is None:
                return False
            if expected_status is not None and row["status"] != expected_status:
                return False
            del self.db.offers[offer_id]
            return True

    def expire_stale(self, now: datetime) -> int:
        expired = 0
        with self.db.lock:
            for row in self.db.offers.values():
                if row["status"] == "pending" and _past_expiry(row, now):
                    row["status"] = "expired"
                    expired += 1
        return expired


class MemoryPurchaseRepository(PurchaseRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    def list_all(self, filters: PurchaseFilter | None = None) -> list[Purchase]:
        filters = filters or PurchaseFilter()
        with self.db.lock:
            rows = [Purchase(**_snapshot(r)) for r in self.db.purchases.values()]
        return _newest_first(
            [p for p in rows if purchase_matches(p, filters)],
            lambda p: p.completed_at,
        )

    def get_by_id(self, purchase_id: int) -> Purchase | None:
        with self.db.lock:
            row = self.db.purchases.get(purchase_id)
            return Purchase(**_snapshot(row)) if row else None

    def create_completing(self, purchase: Purchase) -> Purchase:
        now = datetime.now(timezone.utc)
        with self.db.lock:
            # Check everything first, then apply; nothing is written on failure
            intent = self.db.intents.get(purchase.intent_id)
            if intent is None or intent["status"] != "active":
                raise Conflict("Intent is no longer active")
            if any(r["intent_id"] == purchase.intent_id for r in self.db.purchases.values()):
                raise Conflict("Conflicting record already exists")

            offer = None
            if purchase.offer_id is not None:
                offer = self.db.offers.get(purchase.offer_id)
                if (
                    offer is None
                    or offer["intent_id"] != purchase.intent_id
                    or offer["status"] not in ("pending", "accepted")
                    or (offer["status"] == "pending" and _past_expiry(offer, now))
                ):
                    raise Conflict("Offer can no longer be accepted")

            row = purchase.model_dump()
            row["id"] = self.db.next_id("purchases")
            row["completed_at"] = now
            self.db.purchases[row["id"]] = row

            intent["status"] = "completed"
            if offer is not None:
                offer["status"] = "accepted"
                if offer.get("accepted_at") is None:
                    offer["accepted_at"] = now

            return Purchase(**_snapshot(row))


def memory_storage(db: MemoryDatabase) -> Storage:
    return Storage(
        users=MemoryUserRepository(db),
        intents=MemoryIntentRepository(db),
        offers=MemoryOfferRepository(db),
        purchases=MemoryPurchaseRepository(db),
    )


@lru_cache
def shared_memory_database() -> MemoryDatabase:
    """Process-wide store used when STORAGE_BACKEND=memory."""
    return MemoryDatabase()
