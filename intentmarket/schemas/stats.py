# intentmarket/schemas/stats.py
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

BudgetBucket = Literal["all", "under-500", "500-1000", "1000-2000", "over-2000"]
TimeframeBucket = Literal["all", "week", "month", "ASAP"]


class MarketFilter(SQLModel):
    """
    Filters accepted by the market analytics endpoint.

    category/region/search narrow the active intents in storage;
    budget_filter/timeframe_filter are dashboard buckets applied on top.
    """

    model_config = ConfigDict(extra="forbid")

    category: str | None = None
    region: str | None = None
    search: str | None = None
    budget_filter: BudgetBucket = "all"
    timeframe_filter: TimeframeBucket = "all"


class MarketAnalytics(SQLModel):
    """
    Summary of a filtered set of intents for producer dashboards.

    top_features holds (feature, count) pairs, most frequent first.
    """

    model_config = ConfigDict(extra="forbid")

    total_intents: int
    avg_budget: int
    urgent_intents: int
    urgency_rate: int
    top_features: list[tuple[str, int]]


class ConsumerStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    active_intents: int
    new_offers: int
    completed_purchases: int
    potential_savings: float


class ProducerStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    total_offers: int
    pending_offers: int
    accepted_offers: int
