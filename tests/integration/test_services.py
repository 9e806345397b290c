"""
Service-level behaviour: roles, ownership, status machines and the
purchase side effects. Runs against both storage backends.
"""
from datetime import datetime, timedelta, timezone

import pytest

from intentmarket.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from intentmarket.schemas.intent import IntentCreate, IntentRead, IntentUpdate
from intentmarket.schemas.offer import OfferCreate, OfferUpdate
from intentmarket.schemas.purchase import PurchaseCreate, PurchaseDetails
from intentmarket.schemas.user import UserCreate, UserLogin
from intentmarket.services.intent_service import IntentService
from intentmarket.services.offer_service import OfferService
from intentmarket.services.purchase_service import PurchaseService
from intentmarket.services.stats_service import StatsService
from intentmarket.services.user_service import UserService

intents = IntentService()
offers = OfferService()
purchases = PurchaseService()
stats = StatsService()


@pytest.fixture
def alice(make_user):
    return make_user("consumer")


@pytest.fixture
def bob(make_user):
    return make_user("consumer")


@pytest.fixture
def acme(make_user):
    return make_user("producer")


@pytest.fixture
def globex(make_user):
    return make_user("producer")


@pytest.fixture
def laptop(alice, make_intent):
    return make_intent(alice)


@pytest.fixture
def offer(acme, laptop, make_offer):
    return make_offer(acme, laptop.id)


class TestUsers:

    def test_register_hashes_and_authenticates(self, storage):
        service = UserService()
        user = service.register(
            storage, UserCreate(username="carol", password="hunter22", name="Carol", role="consumer")
        )
        assert user.password != "hunter22"
        assert service.authenticate(storage, UserLogin(username="carol", password="hunter22")).id == user.id
        assert service.authenticate(storage, UserLogin(username="carol", password="nope")) is None
        assert service.authenticate(storage, UserLogin(username="dave", password="hunter22")) is None

    def test_duplicate_username(self, storage):
        payload = UserCreate(username="carol", password="hunter22", name="Carol", role="consumer")
        UserService().register(storage, payload)
        with pytest.raises(Conflict):
            UserService().register(storage, payload)


class TestIntentLifecycle:

    def test_create_intent(self, storage, alice):
        created = intents.create_intent(
            storage,
            alice,
            IntentCreate(
                title="Laptop",
                timeframe="Within 2 weeks",
                budget_min=1000,
                budget_max=1500,
                features=["16GB RAM"],
            ),
        )
        assert created.status == "active"
        assert created.user_id == alice.id
        assert created.id is not None
        assert created.created_at is not None

    def test_producers_cannot_post_intents(self, storage, acme):
        with pytest.raises(Forbidden):
            intents.create_intent(storage, acme, IntentCreate(title="X", timeframe="ASAP"))

    @pytest.mark.parametrize("low, high", [(1500, 1500), (2000, 1000)])
    def test_budget_must_be_ordered_on_create(self, storage, alice, low, high):
        with pytest.raises(InvalidArgument):
            intents.create_intent(
                storage, alice, IntentCreate(title="X", timeframe="ASAP", budget_min=low, budget_max=high)
            )
        assert intents.list_user_intents(storage, alice) == []

    def test_budget_checked_against_merged_update(self, storage, alice, laptop):
        with pytest.raises(InvalidArgument):
            intents.update_intent(storage, alice, laptop.id, IntentUpdate(budget_max=900))
        assert intents.get_intent(storage, laptop.id).budget_max == 1500

    def test_owner_can_update(self, storage, alice, laptop):
        updated = intents.update_intent(
            storage, alice, laptop.id, IntentUpdate(title="Gaming laptop", budget_max=2000)
        )
        assert updated.title == "Gaming laptop"
        assert updated.budget_max == 2000
        assert updated.budget_min == 1000

    def test_explicit_null_keeps_required_fields(self, storage, alice, laptop):
        updated = intents.update_intent(storage, alice, laptop.id, IntentUpdate(title=None, region="EU"))
        assert updated.title == "Laptop"
        assert updated.region == "EU"

    def test_other_user_cannot_mutate(self, storage, bob, laptop):
        before = intents.get_intent(storage, laptop.id).model_dump()
        with pytest.raises(Forbidden):
            intents.update_intent(storage, bob, laptop.id, IntentUpdate(title="Mine now"))
        with pytest.raises(Forbidden):
            intents.delete_intent(storage, bob, laptop.id)
        assert intents.get_intent(storage, laptop.id).model_dump() == before

    def test_delete_then_delete_again(self, storage, alice, laptop):
        intent_id = laptop.id
        assert intents.delete_intent(storage, alice, intent_id) is True
        assert intents.delete_intent(storage, alice, intent_id) is False
        with pytest.raises(NotFound):
            intents.get_intent(storage, intent_id)

    def test_delete_rejected_while_offers_exist(self, storage, alice, laptop, offer):
        with pytest.raises(Conflict):
            intents.delete_intent(storage, alice, laptop.id)
        assert intents.get_intent(storage, laptop.id).status == "active"

    def test_completed_intent_is_frozen(self, storage, alice, laptop):
        purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id))
        with pytest.raises(Conflict):
            intents.update_intent(storage, alice, laptop.id, IntentUpdate(title="Changed"))

    def test_list_rejects_malformed_filter(self, storage):
        with pytest.raises(InvalidArgument):
            intents.list_intents(storage, budget_min="cheap")
        with pytest.raises(InvalidArgument):
            intents.list_intents(storage, budget_min="900", budget_max="100")

    def test_list_filters_from_query_strings(self, storage, alice, make_intent):
        make_intent(alice, title="Cheap phone", budget_min=100, budget_max=200)
        make_intent(alice, title="Pricey laptop", budget_min=2000, budget_max=3000)
        found = intents.list_intents(storage, budget_min="150", budget_max="500", status="active")
        assert [i.title for i in found] == ["Cheap phone"]


class TestOfferLifecycle:

    def test_create_offer(self, storage, acme, laptop):
        created = offers.create_offer(
            storage,
            acme,
            OfferCreate(intent_id=laptop.id, company="Acme", product="Acme Book 15", price=1200, original_price=1400),
        )
        assert created.status == "pending"
        assert created.producer_id == acme.id
        assert created.discount == "14% off"

    def test_consumers_cannot_make_offers(self, storage, bob, laptop):
        with pytest.raises(Forbidden):
            offers.create_offer(storage, bob, OfferCreate(intent_id=laptop.id, company="B", product="P", price=10))

    def test_offer_on_missing_intent(self, storage, acme):
        with pytest.raises(NotFound):
            offers.create_offer(storage, acme, OfferCreate(intent_id=999, company="A", product="P", price=10))

    def test_original_price_must_exceed_price(self, storage, acme, laptop):
        with pytest.raises(InvalidArgument):
            offers.create_offer(
                storage, acme,
                OfferCreate(intent_id=laptop.id, company="A", product="P", price=100, original_price=90),
            )

    def test_accept_then_accept_again(self, storage, alice, offer):
        accepted = offers.accept_offer(storage, alice, offer.id)
        assert accepted.status == "accepted"
        assert accepted.accepted_at is not None

        with pytest.raises(Conflict):
            offers.accept_offer(storage, alice, offer.id)
        assert offers.get_offer(storage, alice, offer.id).status == "accepted"

    @pytest.mark.parametrize("first", ["accept", "decline"])
    def test_terminal_offers_reject_further_decisions(self, storage, alice, offer, first):
        getattr(offers, f"{first}_offer")(storage, alice, offer.id)
        status = offers.get_offer(storage, alice, offer.id).status

        with pytest.raises(Conflict):
            offers.accept_offer(storage, alice, offer.id)
        with pytest.raises(Conflict):
            offers.decline_offer(storage, alice, offer.id)
        assert offers.get_offer(storage, alice, offer.id).status == status

    def test_decline_records_reason(self, storage, alice, offer):
        declined = offers.decline_offer(storage, alice, offer.id, "Too expensive")
        assert declined.status == "declined"
        assert declined.decline_reason == "Too expensive"
        assert declined.declined_at is not None

    def test_only_intent_owner_decides(self, storage, bob, acme, offer):
        with pytest.raises(Forbidden):
            offers.accept_offer(storage, bob, offer.id)
        with pytest.raises(Forbidden):
            offers.decline_offer(storage, acme, offer.id)
        assert offers.get_offer(storage, acme, offer.id).status == "pending"

    def test_other_producer_cannot_delete(self, storage, acme, globex, offer):
        with pytest.raises(Forbidden):
            offers.delete_offer(storage, globex, offer.id)
        assert offers.get_offer(storage, acme, offer.id).id == offer.id

    def test_producer_withdraws_pending_offer(self, storage, acme, offer):
        offer_id = offer.id
        assert offers.delete_offer(storage, acme, offer_id) is True
        assert offers.delete_offer(storage, acme, offer_id) is False

    def test_cannot_withdraw_decided_offer(self, storage, alice, acme, offer):
        offers.accept_offer(storage, alice, offer.id)
        with pytest.raises(Conflict):
            offers.delete_offer(storage, acme, offer.id)

    def test_producer_edits_pending_offer(self, storage, alice, acme, offer):
        updated = offers.update_offer(storage, acme, offer.id, OfferUpdate(price=1100))
        assert updated.price == 1100
        assert updated.discount == "21% off"

        with pytest.raises(InvalidArgument):
            offers.update_offer(storage, acme, offer.id, OfferUpdate(price=1500))

        offers.decline_offer(storage, alice, offer.id)
        with pytest.raises(Conflict):
            offers.update_offer(storage, acme, offer.id, OfferUpdate(price=1000))

    def test_offer_visibility(self, storage, alice, bob, acme, globex, laptop, offer):
        assert [o.id for o in offers.list_intent_offers(storage, alice, laptop.id)] == [offer.id]
        assert [o.id for o in offers.list_received_offers(storage, alice)] == [offer.id]
        assert [o.id for o in offers.list_producer_offers(storage, acme)] == [offer.id]
        assert offers.list_producer_offers(storage, globex) == []

        with pytest.raises(Forbidden):
            offers.list_intent_offers(storage, bob, laptop.id)
        with pytest.raises(Forbidden):
            offers.get_offer(storage, globex, offer.id)

    def test_list_offers_by_status(self, storage, alice, acme, laptop, make_offer):
        first = make_offer(acme, laptop.id)
        second = make_offer(acme, laptop.id, price=1000)
        offers.decline_offer(storage, alice, first.id)
        assert [o.id for o in offers.list_offers(storage, intent_id=laptop.id, status="pending")] == [second.id]
        with pytest.raises(InvalidArgument):
            offers.list_offers(storage, status="withdrawn")

    def test_message_offer(self, storage, alice, acme, globex, offer):
        receipt = offers.message_offer(storage, alice, offer.id, "Can you ship by Friday?")
        assert receipt.success is True
        assert offers.message_offer(storage, acme, offer.id, "Yes").success is True

        with pytest.raises(InvalidArgument):
            offers.message_offer(storage, alice, offer.id, "   ")
        with pytest.raises(Forbidden):
            offers.message_offer(storage, globex, offer.id, "Hi")
        with pytest.raises(NotFound):
            offers.message_offer(storage, alice, 999, "Hi")


class TestExpiry:

    def test_accepting_an_expired_offer(self, storage, alice, acme, laptop, make_raw_offer):
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        stale = make_raw_offer(acme.id, laptop.id, expires_at=past)

        with pytest.raises(Conflict):
            offers.accept_offer(storage, alice, stale.id)
        assert offers.get_offer(storage, alice, stale.id).status == "expired"

    def test_sweeper_hook(self, storage, alice, acme, laptop, make_raw_offer):
        now = datetime.now(timezone.utc)
        make_raw_offer(acme.id, laptop.id, expires_at=now - timedelta(days=1))
        live = make_raw_offer(acme.id, laptop.id, expires_at=now + timedelta(days=1))

        assert offers.expire_stale_offers(storage, now) == 1
        assert offers.get_offer(storage, alice, live.id).status == "pending"


class TestTimestamps:

    def test_read_models_are_utc_aware(self, storage, alice, acme, laptop, make_raw_offer):
        later = datetime.now(timezone.utc) + timedelta(days=1)
        offer = make_raw_offer(acme.id, laptop.id, expires_at=later)
        accepted = offers.accept_offer(storage, alice, offer.id)
        purchase = purchases.create_purchase(
            storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=offer.id)
        )
        intent = IntentRead(**intents.get_intent(storage, laptop.id).model_dump())

        stamps = [accepted.created_at, accepted.expires_at, accepted.accepted_at]
        stamps += [purchase.completed_at, intent.created_at]
        assert all(s.utcoffset() == timedelta(0) for s in stamps)
        assert accepted.expires_at == later


class TestPurchases:

    def test_accept_then_purchase(self, storage, alice, laptop, offer):
        offers.accept_offer(storage, alice, offer.id)
        purchase = purchases.create_purchase(
            storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=offer.id)
        )
        assert purchase.intent_id == laptop.id
        assert intents.get_intent(storage, laptop.id).status == "completed"
        assert offers.get_offer(storage, alice, offer.id).status == "accepted"
        assert [p.id for p in purchases.list_user_purchases(storage, alice)] == [purchase.id]

    def test_purchase_accepts_pending_offer(self, storage, alice, laptop, offer):
        purchases.create_purchase(
            storage,
            alice,
            PurchaseCreate(
                intent_id=laptop.id,
                offer_id=offer.id,
                details=PurchaseDetails(price=1200, company="Acme", extra={"warranty": "2y"}),
            ),
        )
        assert intents.get_intent(storage, laptop.id).status == "completed"
        assert offers.get_offer(storage, alice, offer.id).status == "accepted"

    def test_details_round_trip(self, storage, alice, laptop):
        created = purchases.create_purchase(
            storage,
            alice,
            PurchaseCreate(intent_id=laptop.id, details=PurchaseDetails(notes="Paid cash", extra={"store": "Downtown"})),
        )
        fetched = purchases.get_purchase(storage, alice, created.id)
        assert fetched.details.notes == "Paid cash"
        assert fetched.details.extra == {"store": "Downtown"}
        assert fetched.offer_id is None

    def test_offer_for_another_intent(self, storage, alice, acme, laptop, make_intent, make_offer):
        other = make_intent(alice, title="Phone")
        foreign = make_offer(acme, other.id)
        with pytest.raises(InvalidArgument):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=foreign.id))
        assert intents.get_intent(storage, laptop.id).status == "active"

    def test_declined_offer_cannot_be_purchased(self, storage, alice, laptop, offer):
        offers.decline_offer(storage, alice, offer.id)
        with pytest.raises(Conflict):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=offer.id))
        assert intents.get_intent(storage, laptop.id).status == "active"
        assert purchases.list_user_purchases(storage, alice) == []

    def test_expired_offer_cannot_be_purchased(self, storage, alice, acme, laptop, make_raw_offer):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        stale = make_raw_offer(acme.id, laptop.id, expires_at=past)

        with pytest.raises(Conflict):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=stale.id))

        assert offers.get_offer(storage, alice, stale.id).status == "expired"
        assert intents.get_intent(storage, laptop.id).status == "active"
        assert purchases.list_user_purchases(storage, alice) == []

    def test_accepted_offer_stays_purchasable_after_expiry(self, storage, alice, acme, laptop, make_raw_offer):
        soon = datetime.now(timezone.utc) + timedelta(days=1)
        offer = make_raw_offer(acme.id, laptop.id, expires_at=soon)
        offers.accept_offer(storage, alice, offer.id)
        storage.offers.update(offer.id, {"expires_at": soon - timedelta(days=2)})

        purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=offer.id))
        assert intents.get_intent(storage, laptop.id).status == "completed"

    def test_expired_intent_cannot_be_purchased(self, storage, alice, laptop):
        storage.intents.update(laptop.id, {"status": "expired"})
        with pytest.raises(Conflict, match="intent status transition"):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id))
        assert purchases.list_user_purchases(storage, alice) == []

    def test_only_owner_can_purchase(self, storage, bob, laptop):
        with pytest.raises(Forbidden):
            purchases.create_purchase(storage, bob, PurchaseCreate(intent_id=laptop.id))

    def test_intent_completes_once(self, storage, alice, laptop):
        purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id))
        with pytest.raises(Conflict):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id))

    def test_missing_references(self, storage, alice, laptop):
        with pytest.raises(NotFound):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=999))
        with pytest.raises(NotFound):
            purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id, offer_id=999))

    def test_purchase_is_private(self, storage, alice, bob, laptop):
        created = purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=laptop.id))
        with pytest.raises(Forbidden):
            purchases.get_purchase(storage, bob, created.id)
        with pytest.raises(NotFound):
            purchases.get_purchase(storage, alice, 999)
        assert purchases.list_purchases(storage, intent_id=laptop.id)[0].id == created.id


class TestStats:

    def test_consumer_dashboard(self, storage, alice, acme, laptop, make_intent, make_offer):
        make_offer(acme, laptop.id)  # saves 200
        make_offer(acme, laptop.id, price=1000, original_price=None)
        done = make_intent(alice, title="Phone")
        purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=done.id))

        result = stats.get_user_stats(storage, alice)
        assert result.active_intents == 1
        assert result.new_offers == 2
        assert result.completed_purchases == 1
        assert result.potential_savings == pytest.approx(200.0)

    def test_producer_dashboard(self, storage, alice, acme, laptop, make_offer):
        first = make_offer(acme, laptop.id)
        make_offer(acme, laptop.id, price=1100)
        offers.accept_offer(storage, alice, first.id)

        result = stats.get_user_stats(storage, acme)
        assert result.total_offers == 2
        assert result.pending_offers == 1
        assert result.accepted_offers == 1

    def test_market_analytics_over_active_intents(self, storage, alice, make_intent):
        make_intent(alice, title="A", budget_min=400, budget_max=600, timeframe="ASAP", features=["wifi"])
        make_intent(alice, title="B", budget_min=1000, budget_max=None, timeframe="Within 1 month", features=["wifi"])
        make_intent(alice, title="C", budget_min=2000, budget_max=3000, timeframe="Within 1 week")
        closed = make_intent(alice, title="D", timeframe="ASAP")
        purchases.create_purchase(storage, alice, PurchaseCreate(intent_id=closed.id))

        result = stats.get_market_analytics(storage)
        assert result.total_intents == 3
        assert result.urgent_intents == 2
        assert result.urgency_rate == 67
        assert result.avg_budget == 1500
        assert result.top_features == [("wifi", 2)]

        week = stats.get_market_analytics(storage, timeframe_filter="week")
        assert week.total_intents == 1

    def test_market_analytics_rejects_unknown_bucket(self, storage):
        with pytest.raises(InvalidArgument):
            stats.get_market_analytics(storage, budget_filter="cheap")
