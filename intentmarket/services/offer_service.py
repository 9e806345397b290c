# intentmarket/services/offer_service.py
import logging
from datetime import datetime, timezone

from intentmarket.core.errors import Conflict, InvalidArgument, NotFound
from intentmarket.models.offer import Offer
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.intent import IntentFilter
from intentmarket.schemas.offer import (
    MessageReceipt,
    OfferCreate,
    OfferFilter,
    OfferRead,
    OfferUpdate,
)
from intentmarket.services import rules

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an explicit null in a partial update
_REQUIRED_FIELDS = {"company", "product", "price"}


class OfferService:
    """
    Business logic for offers.

    Responsibilities:
      - only producers create offers, producer_id always comes from the actor
      - producer-only edits/deletes while the offer is pending
      - consumer (intent owner) accept/decline with compare-and-set:
          pending -> accepted | declined
        a lost race or a terminal offer yields Conflict
      - pending offers past expires_at become 'expired' instead
    """

    # -------- Helpers --------

    @staticmethod
    def _build_offer_dto(offer: Offer) -> OfferRead:
        data = offer.model_dump()
        data["discount"] = rules.discount_label(
            offer.price, offer.original_price, offer.discount
        )
        return OfferRead(**data)

    def _get_offer_model(self, storage: Storage, offer_id: int) -> Offer:
        offer = storage.offers.get_by_id(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        return offer

    def _raise_lost_guard(self, storage: Storage, offer_id: int) -> None:
        """A guarded write matched no row: tell missing apart from stale."""
        current = storage.offers.get_by_id(offer_id)
        if current is None:
            raise NotFound("Offer not found")
        raise Conflict(f"Offer is no longer pending (status: {current.status})")

    # -------- Reads --------

    def list_offers(
        self,
        storage: Storage,
        *,
        intent_id=None,
        producer_id=None,
        status=None,
    ) -> list[OfferRead]:
        filters = rules.parse_filter(
            OfferFilter,
            intent_id=intent_id,
            producer_id=producer_id,
            status=status,
        )
        return [self._build_offer_dto(o) for o in storage.offers.list_all(filters)]

    def list_producer_offers(self, storage: Storage, actor: User) -> list[OfferRead]:
        """Offers the acting producer has made."""
        offers = storage.offers.list_all(OfferFilter(producer_id=actor.id))
        return [self._build_offer_dto(o) for o in offers]

    def list_intent_offers(
        self,
        storage: Storage,
        actor: User,
        intent_id: int,
    ) -> list[OfferRead]:
        """Offers on one intent; visible to the intent owner only."""
        intent = storage.intents.get_by_id(intent_id)
        if intent is None:
            raise NotFound("Intent not found")
        rules.ensure_intent_owner(intent, actor, "view offers on")
        offers = storage.offers.list_all(OfferFilter(intent_id=intent_id))
        return [self._build_offer_dto(o) for o in offers]

    def list_received_offers(self, storage: Storage, actor: User) -> list[OfferRead]:
        """All offers made on any of the acting consumer's intents."""
        received: list[OfferRead] = []
        for intent in storage.intents.list_all(IntentFilter(user_id=actor.id)):
            offers = storage.offers.list_all(OfferFilter(intent_id=intent.id))
            received.extend(self._build_offer_dto(o) for o in offers)
        return received

    def get_offer(self, storage: Storage, actor: User, offer_id: int) -> OfferRead:
        """Single offer, visible to its producer and the intent owner."""
        offer = self._get_offer_model(storage, offer_id)
        intent = storage.intents.get_by_id(offer.intent_id)
        rules.ensure_offer_party(offer, intent, actor, "view")
        return self._build_offer_dto(offer)

    # -------- Producer operations --------

    def create_offer(self, storage: Storage, actor: User, payload: OfferCreate) -> OfferRead:
        """
        Submit an offer on an active intent.

        Raises:
            Forbidden: actor is not a producer.
            NotFound: intent does not exist.
            Conflict: intent is no longer active.
            InvalidArgument: original_price <= price.
        """
        rules.ensure_role(actor, "producer", "create offers")

        intent = storage.intents.get_by_id(payload.intent_id)
        if intent is None:
            raise NotFound("Intent not found")
        rules.ensure_intent_active(intent)
        rules.validate_prices(payload.price, payload.original_price)

        offer = Offer(
            intent_id=intent.id,
            producer_id=actor.id,
            company=payload.company,
            product=payload.product,
            price=payload.price,
            original_price=payload.original_price,
            discount=payload.discount,
            expires_at=rules.utc(payload.expires_at) if payload.expires_at else None,
        )
        offer = storage.offers.create(offer)
        logger.info(
            "Offer %s created by producer %s on intent %s", offer.id, actor.id, intent.id
        )
        return self._build_offer_dto(offer)

    def update_offer(
        self,
        storage: Storage,
        actor: User,
        offer_id: int,
        payload: OfferUpdate,
    ) -> OfferRead:
        """Producer edit; only allowed while the offer is still pending."""
        offer = self._get_offer_model(storage, offer_id)
        rules.ensure_offer_producer(offer, actor, "update")
        rules.ensure_offer_pending(offer)

        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if not (field in _REQUIRED_FIELDS and value is None)
        }
        if not changes:
            return self._build_offer_dto(offer)
        if changes.get("expires_at") is not None:
            changes["expires_at"] = rules.utc(changes["expires_at"])

        rules.validate_prices(
            changes.get("price", offer.price),
            changes.get("original_price", offer.original_price),
        )

        updated = storage.offers.update(offer_id, changes, expected_status="pending")
        if updated is None:
            self._raise_lost_guard(storage, offer_id)
        return self._build_offer_dto(updated)

    def delete_offer(self, storage: Storage, actor: User, offer_id: int) -> bool:
        """
        Withdraw a pending offer.

        Returns False when there was nothing to delete.

        Raises:
            Forbidden: actor is not the offer's producer.
            Conflict: the offer already reached a terminal state.
        """
        offer = storage.offers.get_by_id(offer_id)
        if offer is None:
            return False
        rules.ensure_offer_producer(offer, actor, "delete")
        rules.ensure_offer_pending(offer)

        if storage.offers.delete(offer_id, expected_status="pending"):
            logger.info("Offer %s withdrawn by producer %s", offer_id, actor.id)
            return True

        current = storage.offers.get_by_id(offer_id)
        if current is None:
            return False
        raise Conflict(f"Offer is no longer pending (status: {current.status})")

    # -------- Consumer decisions --------

    def _decide(
        self,
        storage: Storage,
        actor: User,
        offer_id: int,
        new_status: str,
        changes: dict,
        now: datetime,
    ) -> OfferRead:
        action = "accept" if new_status == "accepted" else "decline"
        offer = self._get_offer_model(storage, offer_id)
        intent = storage.intents.get_by_id(offer.intent_id)
        rules.ensure_offer_decider(offer, intent, actor, action)
        rules.ensure_offer_pending(offer)

        if rules.is_offer_past_expiry(offer, now):
            storage.offers.update(offer_id, {"status": "expired"}, expected_status="pending")
            logger.info("Offer %s expired before it was %s", offer_id, new_status)
            raise Conflict("Offer has expired")

        if new_status == "accepted":
            rules.ensure_intent_active(intent)

        rules.ensure_transition(rules.OFFER_TRANSITIONS, offer.status, new_status, "offer")
        updated = storage.offers.update(
            offer_id,
            {"status": new_status, **changes},
            expected_status="pending",
        )
        if updated is None:
            self._raise_lost_guard(storage, offer_id)

        logger.info("Offer %s %s by user %s", offer_id, new_status, actor.id)
        return self._build_offer_dto(updated)

    def accept_offer(self, storage: Storage, actor: User, offer_id: int) -> OfferRead:
        """
        Intent owner accepts a pending offer.

        Raises:
            NotFound: offer does not exist.
            Forbidden: actor does not own the referenced intent.
            Conflict: offer is not pending (or lost a concurrent decision).
        """
        now = datetime.now(timezone.utc)
        return self._decide(storage, actor, offer_id, "accepted", {"accepted_at": now}, now)

    def decline_offer(
        self,
        storage: Storage,
        actor: User,
        offer_id: int,
        reason: str | None = None,
    ) -> OfferRead:
        """Intent owner declines a pending offer. Same errors as accept_offer."""
        now = datetime.now(timezone.utc)
        changes = {"declined_at": now, "decline_reason": reason}
        return self._decide(storage, actor, offer_id, "declined", changes, now)

    # -------- Messaging / maintenance --------

    def message_offer(
        self,
        storage: Storage,
        actor: User,
        offer_id: int,
        message: str,
    ) -> MessageReceipt:
        """
        Message the other party about an offer.

        Delivery is not implemented; authorized calls are acknowledged.
        """
        if not message or not message.strip():
            raise InvalidArgument("Message is required")

        offer = self._get_offer_model(storage, offer_id)
        intent = storage.intents.get_by_id(offer.intent_id)
        rules.ensure_offer_party(offer, intent, actor, "message about")

        logger.info("Message about offer %s from user %s", offer_id, actor.id)
        return MessageReceipt(
            success=True,
            message="Message sent successfully",
            timestamp=datetime.now(timezone.utc),
        )

    def expire_stale_offers(self, storage: Storage, now: datetime | None = None) -> int:
        """Hook for an external sweeper: expire pending offers past expires_at."""
        now = now or datetime.now(timezone.utc)
        count = storage.offers.expire_stale(now)
        if count:
            logger.info("Expired %d stale offers", count)
        return count
