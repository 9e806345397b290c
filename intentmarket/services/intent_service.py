# intentmarket/services/intent_service.py
import logging

from intentmarket.core.errors import NotFound
from intentmarket.models.intent import Intent
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.intent import IntentCreate, IntentFilter, IntentUpdate
from intentmarket.services import rules

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an explicit null in a partial update
_REQUIRED_FIELDS = {"title", "timeframe", "features", "brands"}


class IntentService:
    """
    Business logic for purchase intents.

    Responsibilities:
      - filter parsing for listings
      - budget ordering (budget_min < budget_max) on create and on merged edits
      - owner-only edits and deletes
      - reject deletes while offers or purchases reference the intent
    """

    # -------- Reads --------

    def list_intents(
        self,
        storage: Storage,
        *,
        user_id=None,
        status=None,
        category=None,
        region=None,
        search=None,
        budget_min=None,
        budget_max=None,
    ) -> list[Intent]:
        """
        Filtered listing, newest first.

        Raw values may come straight from a query string; malformed ones
        raise InvalidArgument.
        """
        filters = rules.parse_filter(
            IntentFilter,
            user_id=user_id,
            status=status,
            category=category,
            region=region,
            search=search,
            budget_min=budget_min,
            budget_max=budget_max,
        )
        return storage.intents.list_all(filters)

    def list_user_intents(self, storage: Storage, actor: User) -> list[Intent]:
        """The acting user's own intents ("mine")."""
        return storage.intents.list_all(IntentFilter(user_id=actor.id))

    def get_intent(self, storage: Storage, intent_id: int) -> Intent:
        intent = storage.intents.get_by_id(intent_id)
        if intent is None:
            raise NotFound("Intent not found")
        return intent

    # -------- Writes --------

    def create_intent(self, storage: Storage, actor: User, payload: IntentCreate) -> Intent:
        """
        Post a new intent for the acting consumer.

        Backend sets user_id, status='active' and created_at.
        """
        rules.ensure_role(actor, "consumer", "post intents")
        rules.validate_budget(payload.budget_min, payload.budget_max)

        intent = Intent(
            user_id=actor.id,
            title=payload.title,
            timeframe=payload.timeframe,
            budget_min=payload.budget_min,
            budget_max=payload.budget_max,
            features=list(payload.features),
            brands=list(payload.brands),
            category=payload.category,
            region=payload.region,
        )
        intent = storage.intents.create(intent)
        logger.info("Intent %s created by user %s", intent.id, actor.id)
        return intent

    def update_intent(
        self,
        storage: Storage,
        actor: User,
        intent_id: int,
        payload: IntentUpdate,
    ) -> Intent:
        """
        Partial edit by the owner while the intent is active.

        The budget rule is checked against the merged result, so sending
        only budget_max still has to stay above the stored budget_min.
        """
        intent = self.get_intent(storage, intent_id)
        rules.ensure_intent_owner(intent, actor, "update")
        rules.ensure_intent_active(intent)

        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if not (field in _REQUIRED_FIELDS and value is None)
        }
        if not changes:
            return intent

        rules.validate_budget(
            changes.get("budget_min", intent.budget_min),
            changes.get("budget_max", intent.budget_max),
        )

        updated = storage.intents.update(intent_id, changes)
        if updated is None:
            raise NotFound("Intent not found")
        return updated

    def delete_intent(self, storage: Storage, actor: User, intent_id: int) -> bool:
        """
        Delete an intent owned by the actor.

        Returns False when there was nothing to delete, so repeating the
        call is harmless.

        Raises:
            Forbidden: actor is not the owner.
            Conflict: offers or purchases still reference the intent.
        """
        intent = storage.intents.get_by_id(intent_id)
        if intent is None:
            return False
        rules.ensure_intent_owner(intent, actor, "delete")

        deleted = storage.intents.delete(intent_id)
        if deleted:
            logger.info("Intent %s deleted by user %s", intent_id, actor.id)
        return deleted
