# intentmarket/repositories/offer_repo.py
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, update
from sqlmodel import Session, select

from intentmarket.models.offer import Offer
from intentmarket.repositories.base import OfferRepository, translate_store_errors
from intentmarket.schemas.offer import OfferFilter


class SqlOfferRepository(OfferRepository):
    """
    Data access layer for offers.

    Guarded writes are issued as a single conditional statement
    (UPDATE ... WHERE id = :id AND status = :expected) and judged by the
    affected row count, never as read-then-blind-write.
    """

    def __init__(self, session: Session):
        self.session = session

    def list_all(self, filters: OfferFilter | None = None) -> list[Offer]:
        filters = filters or OfferFilter()
        stmt = select(Offer)
        if filters.intent_id is not None:
            stmt = stmt.where(Offer.intent_id == filters.intent_id)
        if filters.producer_id is not None:
            stmt = stmt.where(Offer.producer_id == filters.producer_id)
        if filters.status is not None:
            stmt = stmt.where(Offer.status == filters.status)
        stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.desc())

        with translate_store_errors(self.session):
            return list(self.session.exec(stmt).all())

    def get_by_id(self, offer_id: int) -> Offer | None:
        with translate_store_errors(self.session):
            return self.session.get(Offer, offer_id)

    def create(self, offer: Offer) -> Offer:
        offer.id = None
        offer.status = "pending"
        offer.created_at = datetime.now(timezone.utc)
        with translate_store_errors(self.session):
            self.session.add(offer)
            self.session.commit()
            self.session.refresh(offer)
            return offer

    def update(
        self,
        offer_id: int,
        changes: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> Offer | None:
        if not changes:
            return self.get_by_id(offer_id)

        stmt = update(Offer).where(Offer.id == offer_id)
        if expected_status is not None:
            stmt = stmt.where(Offer.status == expected_status)
        stmt = stmt.values(**changes)

        with translate_store_errors(self.session):
            result = self.session.connection().execute(stmt)
            if result.rowcount != 1:
                self.session.rollback()
                return None
            self.session.commit()
            # commit expired the identity map, so this reads fresh state
            return self.session.get(Offer, offer_id)

    def delete(self, offer_id: int, *, expected_status: str | None = None) -> bool:
        stmt = delete(Offer).where(Offer.id == offer_id)
        if expected_status is not None:
            stmt = stmt.where(Offer.status == expected_status)

        with translate_store_errors(self.session):
            result = self.session.connection().execute(stmt)
            self.session.commit()
            return result.rowcount > 0

    def expire_stale(self, now: datetime) -> int:
        stmt = (
            update(Offer)
            .where(
                Offer.status == "pending",
                Offer.expires_at.is_not(None),
                Offer.expires_at <= now,
            )
            .values(status="expired")
        )
        with translate_store_errors(self.session):
            result = self.session.connection().execute(stmt)
            self.session.commit()
            return int(result.rowcount or 0)
