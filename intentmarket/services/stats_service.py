# intentmarket/services/stats_service.py
from intentmarket.models.user import User
from intentmarket.repositories.base import Storage
from intentmarket.schemas.intent import IntentFilter
from intentmarket.schemas.offer import OfferFilter
from intentmarket.schemas.purchase import PurchaseFilter
from intentmarket.schemas.stats import (
    ConsumerStats,
    MarketAnalytics,
    MarketFilter,
    ProducerStats,
)
from intentmarket.services import analytics, rules


class StatsService:
    """
    Orchestrates dashboard statistics.

      - market analytics for producers (active intents only)
      - per-user counters for the consumer / producer dashboards
    """

    def get_market_analytics(
        self,
        storage: Storage,
        *,
        category=None,
        region=None,
        search=None,
        budget_filter=None,
        timeframe_filter=None,
    ) -> MarketAnalytics:
        filters = rules.parse_filter(
            MarketFilter,
            category=category,
            region=region,
            search=search,
            budget_filter=budget_filter,
            timeframe_filter=timeframe_filter,
        )

        intents = storage.intents.list_all(
            IntentFilter(
                status="active",
                category=filters.category,
                region=filters.region,
                search=filters.search,
            )
        )
        intents = analytics.apply_buckets(
            intents, filters.budget_filter, filters.timeframe_filter
        )
        return analytics.compute_market_analytics(intents)

    def get_user_stats(self, storage: Storage, actor: User) -> ConsumerStats | ProducerStats:
        if actor.role == "producer":
            offers = storage.offers.list_all(OfferFilter(producer_id=actor.id))
            return ProducerStats(
                total_offers=len(offers),
                pending_offers=sum(1 for o in offers if o.status == "pending"),
                accepted_offers=sum(1 for o in offers if o.status == "accepted"),
            )

        active_intents = storage.intents.list_all(
            IntentFilter(user_id=actor.id, status="active")
        )
        purchases = storage.purchases.list_all(PurchaseFilter(user_id=actor.id))

        new_offers = []
        for intent in active_intents:
            new_offers.extend(
                storage.offers.list_all(OfferFilter(intent_id=intent.id, status="pending"))
            )

        # Savings only count where the offer undercuts its original price
        potential_savings = sum(
            max(0.0, o.original_price - o.price)
            for o in new_offers
            if o.original_price is not None
        )

        return ConsumerStats(
            active_intents=len(active_intents),
            new_offers=len(new_offers),
            completed_purchases=len(purchases),
            potential_savings=potential_savings,
        )
