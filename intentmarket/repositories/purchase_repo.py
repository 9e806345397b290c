# intentmarket/repositories/purchase_repo.py
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

from intentmarket.core.errors import Conflict
from intentmarket.models.intent import Intent
from intentmarket.models.offer import Offer
from intentmarket.models.purchase import Purchase
from intentmarket.repositories.base import PurchaseRepository, translate_store_errors
from intentmarket.schemas.purchase import PurchaseFilter


class SqlPurchaseRepository(PurchaseRepository):
    """
    Data access layer for purchases.

    NOTE:
      - Purchase creation is a multi-table transaction: the purchase row,
        the intent status and the offer status commit together or not at all.
    """

    def __init__(self, session: Session):
        self.session = session

    def list_all(self, filters: PurchaseFilter | None = None) -> list[Purchase]:
        filters = filters or PurchaseFilter()
        stmt = select(Purchase)
        if filters.user_id is not None:
            stmt = stmt.where(Purchase.user_id == filters.user_id)
        if filters.intent_id is not None:
            stmt = stmt.where(Purchase.intent_id == filters.intent_id)
        stmt = stmt.order_by(Purchase.completed_at.desc(), Purchase.id.desc())

        with translate_store_errors(self.session):
            return list(self.session.exec(stmt).all())

    def get_by_id(self, purchase_id: int) -> Purchase | None:
        with translate_store_errors(self.session):
            return self.session.get(Purchase, purchase_id)

    def create_completing(self, purchase: Purchase) -> Purchase:
        now = datetime.now(timezone.utc)
        purchase.id = None
        purchase.completed_at = now

        with translate_store_errors(self.session):
            conn = self.session.connection()

            # 1) intent: active -> completed
            result = conn.execute(
                update(Intent)
                .where(Intent.id == purchase.intent_id, Intent.status == "active")
                .values(status="completed")
            )
            if result.rowcount != 1:
                raise Conflict("Intent is no longer active")

            # 2) offer: unexpired pending or accepted -> accepted
            if purchase.offer_id is not None:
                result = conn.execute(
                    update(Offer)
                    .where(
                        Offer.id == purchase.offer_id,
                        Offer.intent_id == purchase.intent_id,
                        or_(
                            Offer.status == "accepted",
                            and_(
                                Offer.status == "pending",
                                or_(Offer.expires_at.is_(None), Offer.expires_at > now),
                            ),
                        ),
                    )
                    .values(
                        status="accepted",
                        accepted_at=func.coalesce(Offer.accepted_at, now),
                    )
                )
                if result.rowcount != 1:
                    raise Conflict("Offer can no longer be accepted")

            # 3) ledger row
            self.session.add(purchase)
            self.session.flush()

            self.session.commit()
            self.session.refresh(purchase)
            return purchase
