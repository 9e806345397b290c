# intentmarket/routers/offers.py
from fastapi import APIRouter, Depends, status

from intentmarket.core.auth import require_auth
from intentmarket.database import get_storage
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.offer import (
    MessageReceipt,
    OfferCreate,
    OfferDecline,
    OfferMessage,
    OfferRead,
    OfferUpdate,
)
from intentmarket.services.offer_service import OfferService

router = APIRouter(prefix="/offers", tags=["Offers"])

service = OfferService()


# -------- Producer endpoints --------


@router.post("", response_model=OfferRead, status_code=status.HTTP_201_CREATED)
def create_offer(
    payload: OfferCreate,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Submit an offer on an intent.

    Auth:
      - Only role='producer'; producer_id is taken from the token.
    """
    return service.create_offer(storage, current_user, payload)


@router.get("/{offer_id}", response_model=OfferRead)
def get_offer(
    offer_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Single offer (its producer or the intent owner)."""
    return service.get_offer(storage, current_user, offer_id)


@router.patch("/{offer_id}", response_model=OfferRead)
def update_offer(
    offer_id: int,
    payload: OfferUpdate,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Edit a pending offer (its producer only)."""
    return service.update_offer(storage, current_user, offer_id, payload)


@router.delete("/{offer_id}")
def delete_offer(
    offer_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
) -> dict[str, bool]:
    """Withdraw a pending offer (its producer only)."""
    return {"deleted": service.delete_offer(storage, current_user, offer_id)}


# -------- Consumer endpoints --------


@router.patch("/{offer_id}/accept", response_model=OfferRead)
def accept_offer(
    offer_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Accept a pending offer (intent owner only).

      pending -> accepted

    409 if the offer is no longer pending.
    """
    return service.accept_offer(storage, current_user, offer_id)


@router.patch("/{offer_id}/decline", response_model=OfferRead)
def decline_offer(
    offer_id: int,
    payload: OfferDecline | None = None,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Decline a pending offer (intent owner only), with an optional reason.

      pending -> declined
    """
    reason = payload.reason if payload else None
    return service.decline_offer(storage, current_user, offer_id, reason)


@router.post("/{offer_id}/message", response_model=MessageReceipt)
def message_offer(
    offer_id: int,
    payload: OfferMessage,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Send a message about an offer (its producer or the intent owner)."""
    return service.message_offer(storage, current_user, offer_id, payload.message)
