# intentmarket/services/purchase_service.py
import logging
from datetime import datetime, timezone

from intentmarket.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from intentmarket.models.purchase import Purchase
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.purchase import PurchaseCreate, PurchaseFilter, PurchaseRead
from intentmarket.services import rules

logger = logging.getLogger(__name__)


class PurchaseService:
    """
    Business logic for purchases.

    Steps for create_purchase:
      1. Intent exists and belongs to the actor.
      2. Intent may still move to completed.
      3. If offer_id is given: offer exists, targets the same intent and
         is already accepted or pending and not past expires_at. A
         pending offer past its expiry is moved to expired instead.
      4. Storage inserts the purchase and completes the intent (and
         accepts the offer) in one unit of work.
    """

    @staticmethod
    def _build_purchase_dto(purchase: Purchase) -> PurchaseRead:
        return PurchaseRead(**purchase.model_dump())

    # -------- Reads --------

    def list_purchases(self, storage: Storage, *, user_id=None, intent_id=None) -> list[PurchaseRead]:
        filters = rules.parse_filter(PurchaseFilter, user_id=user_id, intent_id=intent_id)
        return [self._build_purchase_dto(p) for p in storage.purchases.list_all(filters)]

    def list_user_purchases(self, storage: Storage, actor: User) -> list[PurchaseRead]:
        purchases = storage.purchases.list_all(PurchaseFilter(user_id=actor.id))
        return [self._build_purchase_dto(p) for p in purchases]

    def get_purchase(self, storage: Storage, actor: User, purchase_id: int) -> PurchaseRead:
        purchase = storage.purchases.get_by_id(purchase_id)
        if purchase is None:
            raise NotFound("Purchase not found")
        if purchase.user_id != actor.id:
            raise Forbidden("Not authorized to view this purchase")
        return self._build_purchase_dto(purchase)

    # -------- Writes --------

    def create_purchase(
        self,
        storage: Storage,
        actor: User,
        payload: PurchaseCreate,
    ) -> PurchaseRead:
        """
        Record a completed purchase.

        Raises:
            NotFound: intent (or given offer) does not exist.
            Forbidden: actor does not own the intent.
            InvalidArgument: offer targets a different intent.
            Conflict: intent already completed/expired, or offer declined/expired.
        """
        now = datetime.now(timezone.utc)
        intent = storage.intents.get_by_id(payload.intent_id)
        if intent is None:
            raise NotFound("Intent not found")
        rules.ensure_intent_owner(intent, actor, "complete")
        rules.ensure_transition(rules.INTENT_TRANSITIONS, intent.status, "completed", "intent")

        if payload.offer_id is not None:
            offer = storage.offers.get_by_id(payload.offer_id)
            if offer is None:
                raise NotFound("Offer not found")
            if offer.intent_id != intent.id:
                raise InvalidArgument("Offer is not for this intent")
            if offer.status not in ("pending", "accepted"):
                raise Conflict(f"Offer cannot be purchased (status: {offer.status})")
            if offer.status == "pending" and rules.is_offer_past_expiry(offer, now):
                storage.offers.update(offer.id, {"status": "expired"}, expected_status="pending")
                logger.info("Offer %s expired before it was purchased", offer.id)
                raise Conflict("Offer has expired")

        details = None
        if payload.details is not None:
            details = payload.details.model_dump(exclude_none=True)

        purchase = storage.purchases.create_completing(
            Purchase(
                intent_id=intent.id,
                offer_id=payload.offer_id,
                user_id=actor.id,
                details=details,
            )
        )
        logger.info(
            "Purchase %s completed intent %s (offer=%s) for user %s",
            purchase.id,
            intent.id,
            payload.offer_id,
            actor.id,
        )
        return self._build_purchase_dto(purchase)
