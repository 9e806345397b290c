# intentmarket/routers/users.py
from fastapi import APIRouter, Depends

from intentmarket.core.auth import require_auth
from intentmarket.database import get_storage
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.intent import IntentRead
from intentmarket.schemas.offer import OfferRead
from intentmarket.schemas.purchase import PurchaseRead
from intentmarket.schemas.stats import ConsumerStats, ProducerStats
from intentmarket.schemas.user import UserRead
from intentmarket.services.intent_service import IntentService
from intentmarket.services.offer_service import OfferService
from intentmarket.services.purchase_service import PurchaseService
from intentmarket.services.stats_service import StatsService

# "/users/me" is the profile; "/user/*" are the caller's own collections.
# There is no route that reads another user's private collections.
router = APIRouter(tags=["Users"])

intent_service = IntentService()
offer_service = OfferService()
purchase_service = PurchaseService()
stats_service = StatsService()


@router.get("/users/me", response_model=UserRead)
def read_me(current_user: User = Depends(require_auth)):
    """Return the authenticated user's profile."""
    return current_user


@router.get("/user/intents", response_model=list[IntentRead])
def list_my_intents(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Intents posted by the caller, newest first."""
    return intent_service.list_user_intents(storage, current_user)


@router.get("/user/offers", response_model=list[OfferRead])
def list_my_offers(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Offers made by the caller (producers)."""
    return offer_service.list_producer_offers(storage, current_user)


@router.get("/user/received-offers", response_model=list[OfferRead])
def list_received_offers(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Offers made on any of the caller's intents (consumers)."""
    return offer_service.list_received_offers(storage, current_user)


@router.get("/user/purchases", response_model=list[PurchaseRead])
def list_my_purchases(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Purchases recorded by the caller."""
    return purchase_service.list_user_purchases(storage, current_user)


@router.get("/user/stats", response_model=ConsumerStats | ProducerStats)
def get_my_stats(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Dashboard counters.

      - consumer: active_intents, new_offers, completed_purchases, potential_savings
      - producer: total_offers, pending_offers, accepted_offers
    """
    return stats_service.get_user_stats(storage, current_user)
