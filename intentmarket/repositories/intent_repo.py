# intentmarket/repositories/intent_repo.py
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, exists, or_
from sqlmodel import Session, select

from intentmarket.core.errors import Conflict
from intentmarket.models.intent import Intent
from intentmarket.models.offer import Offer
from intentmarket.models.purchase import Purchase
from intentmarket.repositories.base import (
    INTENT_REFERENCED,
    IntentRepository,
    matches_search,
    translate_store_errors,
)
from intentmarket.schemas.intent import IntentFilter


class SqlIntentRepository(IntentRepository):
    """
    Data access layer for intents.

    Exact-match and budget filters run in SQL. The free-text search also
    has to look inside the JSON feature list, so it is applied to the
    ordered rows afterwards.
    """

    def __init__(self, session: Session):
        self.session = session

    def list_all(self, filters: IntentFilter | None = None) -> list[Intent]:
        filters = filters or IntentFilter()
        stmt = select(Intent)

        if filters.user_id is not None:
            stmt = stmt.where(Intent.user_id == filters.user_id)
        if filters.status is not None:
            stmt = stmt.where(Intent.status == filters.status)
        if filters.category is not None:
            stmt = stmt.where(Intent.category == filters.category)
        if filters.region is not None:
            stmt = stmt.where(Intent.region == filters.region)

        # Overlap test, missing intent bounds are unbounded
        if filters.budget_min is not None:
            stmt = stmt.where(
                or_(Intent.budget_max.is_(None), Intent.budget_max >= filters.budget_min)
            )
        if filters.budget_max is not None:
            stmt = stmt.where(
                or_(Intent.budget_min.is_(None), Intent.budget_min <= filters.budget_max)
            )

        stmt = stmt.order_by(Intent.created_at.desc(), Intent.id.desc())

        with translate_store_errors(self.session):
            rows = list(self.session.exec(stmt).all())

        if filters.search is not None:
            rows = [row for row in rows if matches_search(row, filters.search)]
        return rows

    def get_by_id(self, intent_id: int) -> Intent | None:
        with translate_store_errors(self.session):
            return self.session.get(Intent, intent_id)

    def create(self, intent: Intent) -> Intent:
        intent.id = None
        intent.status = "active"
        intent.created_at = datetime.now(timezone.utc)
        with translate_store_errors(self.session):
            self.session.add(intent)
            self.session.commit()
            self.session.refresh(intent)
            return intent

    def update(self, intent_id: int, changes: dict[str, Any]) -> Intent | None:
        with translate_store_errors(self.session):
            intent = self.session.get(Intent, intent_id)
            if intent is None:
                return None
            for field, value in changes.items():
                setattr(intent, field, value)
            self.session.add(intent)
            self.session.commit()
            self.session.refresh(intent)
            return intent

    def delete(self, intent_id: int) -> bool:
        # Reference check and delete are a single statement
        stmt = delete(Intent).where(
            Intent.id == intent_id,
            ~exists().where(Offer.intent_id == intent_id),
            ~exists().where(Purchase.intent_id == intent_id),
        )
        with translate_store_errors(self.session):
            result = self.session.connection().execute(stmt)
            if result.rowcount == 1:
                self.session.commit()
                return True
            self.session.rollback()
            if self.session.get(Intent, intent_id) is None:
                return False
            raise Conflict(INTENT_REFERENCED)
