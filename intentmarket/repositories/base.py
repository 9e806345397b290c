# intentmarket/repositories/base.py
"""
Storage interface shared by the relational and in-memory backends.

Both implementations must satisfy identical contracts:
  - list_all(...) orders newest first, ties broken by id descending
  - get_by_id(...) returns None for unknown ids (services raise NotFound)
  - update(...) merges the given fields and returns None for unknown ids
  - delete(...) returns whether a row was actually removed
  - offer transitions and purchase creation are compare-and-set /
    all-or-nothing operations
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlmodel import Session

from intentmarket.core.errors import Conflict, StoreUnavailable
from intentmarket.models.intent import Intent
from intentmarket.models.offer import Offer
from intentmarket.models.purchase import Purchase
from intentmarket.models.user import User
from intentmarket.schemas.intent import IntentFilter
from intentmarket.schemas.offer import OfferFilter
from intentmarket.schemas.purchase import PurchaseFilter

logger = logging.getLogger(__name__)

INTENT_REFERENCED = "Intent has offers or purchases and cannot be deleted"


# ----- Shared predicates -----


def matches_search(intent: Intent, term: str) -> bool:
    """Case-insensitive substring match on title or any feature."""
    needle = term.lower()
    if needle in intent.title.lower():
        return True
    return any(needle in feature.lower() for feature in intent.features or [])


def matches_budget(intent: Intent, low: float | None, high: float | None) -> bool:
    """
    Range overlap test:
      intent.budget_max >= low AND intent.budget_min <= high
    Missing bounds on either side are unbounded.
    """
    if low is not None and intent.budget_max is not None and intent.budget_max < low:
        return False
    if high is not None and intent.budget_min is not None and intent.budget_min > high:
        return False
    return True


def intent_matches(intent: Intent, filters: IntentFilter) -> bool:
    if filters.user_id is not None and intent.user_id != filters.user_id:
        return False
    if filters.status is not None and intent.status != filters.status:
        return False
    if filters.category is not None and intent.category != filters.category:
        return False
    if filters.region is not None and intent.region != filters.region:
        return False
    if filters.search is not None and not matches_search(intent, filters.search):
        return False
    return matches_budget(intent, filters.budget_min, filters.budget_max)


def offer_matches(offer: Offer, filters: OfferFilter) -> bool:
    if filters.intent_id is not None and offer.intent_id != filters.intent_id:
        return False
    if filters.producer_id is not None and offer.producer_id != filters.producer_id:
        return False
    if filters.status is not None and offer.status != filters.status:
        return False
    return True


def purchase_matches(purchase: Purchase, filters: PurchaseFilter) -> bool:
    if filters.user_id is not None and purchase.user_id != filters.user_id:
        return False
    if filters.intent_id is not None and purchase.intent_id != filters.intent_id:
        return False
    return True


@contextmanager
def translate_store_errors(session: Session) -> Iterator[None]:
    """
    Roll back on any failure and map driver errors onto the domain taxonomy:
      - IntegrityError                  -> Conflict
      - OperationalError/InterfaceError -> StoreUnavailable
    """
    try:
        yield
    except IntegrityError as e:
        session.rollback()
        raise Conflict("Conflicting record already exists") from e
    except (OperationalError, InterfaceError) as e:
        session.rollback()
        logger.error("Data store unavailable: %s", e)
        raise StoreUnavailable() from e
    except Exception:
        session.rollback()
        raise


# ----- Repository interfaces -----


class UserRepository(ABC):

    @abstractmethod
    def get_by_id(self, user_id: int) -> User | None: ...

    @abstractmethod
    def get_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    def create(self, user: User) -> User:
        """Insert a new user. Raises Conflict if the username is taken."""


class IntentRepository(ABC):

    @abstractmethod
    def list_all(self, filters: IntentFilter | None = None) -> list[Intent]: ...

    @abstractmethod
    def get_by_id(self, intent_id: int) -> Intent | None: ...

    @abstractmethod
    def create(self, intent: Intent) -> Intent:
        """Assign a fresh id, status='active' and created_at, then persist."""

    @abstractmethod
    def update(self, intent_id: int, changes: dict[str, Any]) -> Intent | None: ...

    @abstractmethod
    def delete(self, intent_id: int) -> bool:
        """
        Remove the intent. Returns False if it does not exist.

        Raises Conflict (and deletes nothing) while any offer or purchase
        points at the intent; the check and the delete are one unit of work.
        """


class OfferRepository(ABC):

    @abstractmethod
    def list_all(self, filters: OfferFilter | None = None) -> list[Offer]: ...

    @abstractmethod
    def get_by_id(self, offer_id: int) -> Offer | None: ...

    @abstractmethod
    def create(self, offer: Offer) -> Offer:
        """Assign a fresh id, status='pending' and created_at, then persist."""

    @abstractmethod
    def update(
        self,
        offer_id: int,
        changes: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> Offer | None:
        """
        Merge `changes` into the offer.

        With expected_status set this is a compare-and-set: the write only
        happens if the stored status still equals expected_status at the
        moment of update. Returns None when the row is missing or the
        guard did not hold.
        """

    @abstractmethod
    def delete(self, offer_id: int, *, expected_status: str | None = None) -> bool: ...

    @abstractmethod
    def expire_stale(self, now: datetime) -> int:
        """Move pending offers whose expires_at <= now to 'expired'."""


class PurchaseRepository(ABC):

    @abstractmethod
    def list_all(self, filters: PurchaseFilter | None = None) -> list[Purchase]: ...

    @abstractmethod
    def get_by_id(self, purchase_id: int) -> Purchase | None: ...

    @abstractmethod
    def create_completing(self, purchase: Purchase) -> Purchase:
        """
        Insert the purchase and, in the same unit of work:
          - move the intent active -> completed
          - move the offer (if any) pending/accepted -> accepted

        Raises Conflict (and leaves everything untouched) if the intent is
        no longer active or the offer is in another terminal state.
        """


@dataclass
class Storage:
    """Per-request bundle of repositories handed to the services."""

    users: UserRepository
    intents: IntentRepository
    offers: OfferRepository
    purchases: PurchaseRepository
