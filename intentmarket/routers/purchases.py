# intentmarket/routers/purchases.py
from fastapi import APIRouter, Depends, status

from intentmarket.core.auth import require_auth
from intentmarket.database import get_storage
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.purchase import PurchaseCreate, PurchaseRead
from intentmarket.services.purchase_service import PurchaseService

router = APIRouter(prefix="/purchases", tags=["Purchases"])

service = PurchaseService()


@router.post("", response_model=PurchaseRead, status_code=status.HTTP_201_CREATED)
def create_purchase(
    payload: PurchaseCreate,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """
    Complete one of the caller's intents.

    Side effects:
      - intent -> completed
      - offer  -> accepted (when offer_id is given)
    """
    return service.create_purchase(storage, current_user, payload)


@router.get("/{purchase_id}", response_model=PurchaseRead)
def get_purchase(
    purchase_id: int,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_auth),
):
    """Single purchase (its owner only)."""
    return service.get_purchase(storage, current_user, purchase_id)
