# intentmarket/services/rules.py
"""
Authorization and status-transition rules.

Every mutation in the services goes through one of these guards before
it touches storage. They are pure: they inspect entities and either
return or raise a domain error.
"""
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError
from sqlmodel import SQLModel

from intentmarket.core.errors import Conflict, Forbidden, InvalidArgument
from intentmarket.models.intent import Intent
from intentmarket.models.offer import Offer
from intentmarket.models.user import User
from intentmarket.schemas.common import utc

F = TypeVar("F", bound=SQLModel)

# Legal status moves. Terminal states map to an empty set.
INTENT_TRANSITIONS: dict[str, set[str]] = {
    "active": {"completed", "expired"},
    "completed": set(),
    "expired": set(),
}

OFFER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"accepted", "declined", "expired"},
    "accepted": set(),
    "declined": set(),
    "expired": set(),
}


# ----- Input checks -----


def parse_filter(model: type[F], **raw: Any) -> F:
    """
    Build a filter object from loosely typed query values.

    None values are dropped; anything that fails validation
    (non-numeric bounds, unknown status, min > max) is InvalidArgument.
    """
    values = {k: v for k, v in raw.items() if v is not None}
    try:
        return model.model_validate(values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'filter'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidArgument(f"Invalid filter: {problems}") from e


def validate_budget(budget_min: float | None, budget_max: float | None) -> None:
    if budget_min is not None and budget_max is not None and budget_min >= budget_max:
        raise InvalidArgument("budget_min must be less than budget_max")


def validate_prices(price: float, original_price: float | None) -> None:
    if original_price is not None and original_price <= price:
        raise InvalidArgument("original_price must be greater than price")


# ----- Role / ownership -----


def ensure_role(user: User, role: str, action: str) -> None:
    if user.role != role:
        raise Forbidden(f"Only {role}s can {action}")


def ensure_intent_owner(intent: Intent, user: User, action: str) -> None:
    if intent.user_id != user.id:
        raise Forbidden(f"Not authorized to {action} this intent")


def ensure_offer_producer(offer: Offer, user: User, action: str) -> None:
    if offer.producer_id != user.id:
        raise Forbidden(f"Not authorized to {action} this offer")


def ensure_offer_party(offer: Offer, intent: Intent | None, user: User, action: str) -> None:
    """Only the offer's producer or the intent's owner are parties to an offer."""
    is_producer = offer.producer_id == user.id
    is_owner = intent is not None and intent.user_id == user.id
    if not (is_producer or is_owner):
        raise Forbidden(f"Not authorized to {action} this offer")


def ensure_offer_decider(offer: Offer, intent: Intent | None, user: User, action: str) -> None:
    """Accept/decline belongs to the consumer who owns the referenced intent."""
    if intent is None or intent.user_id != user.id:
        raise Forbidden(f"Not authorized to {action} this offer")


# ----- Status machines -----


def ensure_transition(
    transitions: dict[str, set[str]],
    current: str,
    new: str,
    kind: str,
) -> None:
    if current not in transitions or new not in transitions[current]:
        raise Conflict(f"Invalid {kind} status transition: {current} -> {new}")


def ensure_offer_pending(offer: Offer) -> None:
    if offer.status != "pending":
        raise Conflict(f"Offer is no longer pending (status: {offer.status})")


def ensure_intent_active(intent: Intent) -> None:
    if intent.status != "active":
        raise Conflict(f"Intent is no longer active (status: {intent.status})")


def is_offer_past_expiry(offer: Offer, now: datetime) -> bool:
    return offer.expires_at is not None and utc(offer.expires_at) <= now


# ----- Derived values -----


def discount_label(
    price: float,
    original_price: float | None,
    fallback: str | None = None,
) -> str | None:
    """
    Percentage saved relative to original_price, e.g. 1200 vs 1400 -> "14% off".
    Falls back to the stored label when no original price is known.
    """
    if original_price is None or original_price <= price:
        return fallback
    percent = round((original_price - price) / original_price * 100)
    return f"{percent}% off"
