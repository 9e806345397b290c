# intentmarket/routers/intents.py
from fastapi import APIRouter, Depends, Query, status

from intentmarket.core.auth import require_auth
from intentmarket.database import get_storage
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.intent import IntentCreate, IntentRead, IntentUpdate
from intentmarket.schemas.offer import OfferRead
from intentmarket.services.intent_service import IntentService
from intentmarket.services.offer_service import OfferService

router = APIRouter(prefix="/intents", tags=["Intents"])

service = IntentService()
offer_service = OfferService()


@router.get("", response_model=list[IntentRead], dependencies=[Depends(require_auth)])
def list_intents(
    storage: Storage = Depends(get_storage),
    intent_status: str | None = Query(None, alias="status"),
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    budget_min: str | None = None,
    budget_max: str | None = None,
):
    """
    Browse intents (producers).

    Query params (optional, ANDed):
      - status, category, region: exact match
      - search: title or feature substring, case-insensitive
      - budget_min / budget_max: budget range overlap

    Malformed values answer 400.
    """
    return service.list_intents(
        storage,
        status=intent_status,
        category=category,
        region=region,
        search=search,
        budget_min=budget_min,
        budget_max=budget_max,
    )


@router.get("/{intent_id}", response_model=IntentRead, dependencies=[Depends(require_auth)])
def get_intent(
    intent_id: int,
    storage: Storage = Depends(get_storage),
):
    """Get a single intent by id."""
    return service.get_intent(storage, intent_id)


@router.post("", response_model=IntentRead, status_code=status.HTTP_201_CREATED)
def create_intent(
    payload: IntentCreate,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Post a purchase intent.

    Auth:
      - Only role='consumer'.
    """
    return service.create_intent(storage, current_user, payload)


@router.patch("/{intent_id}", response_model=IntentRead)
def update_intent(
    intent_id: int,
    payload: IntentUpdate,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Partial update (owner only)."""
    return service.update_intent(storage, current_user, intent_id, payload)


@router.delete("/{intent_id}")
def delete_intent(
    intent_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
) -> dict[str, bool]:
    """
    Delete an intent (owner only).

    Returns {"deleted": false} when nothing was removed.
    """
    return {"deleted": service.delete_intent(storage, current_user, intent_id)}


@router.get("/{intent_id}/offers", response_model=list[OfferRead])
def list_intent_offers(
    intent_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Offers received on an intent (intent owner only)."""
    return offer_service.list_intent_offers(storage, current_user, intent_id)
