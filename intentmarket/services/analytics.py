# intentmarket/services/analytics.py
"""
Market analytics over a list of intents.

Everything here is pure: inputs are never mutated and the same list
always yields the same result. Only top_features depends on input order,
and only to break ties between equally frequent features.
"""
import math
from collections import Counter
from typing import Iterable

from intentmarket.models.intent import Intent
from intentmarket.schemas.stats import BudgetBucket, MarketAnalytics, TimeframeBucket

URGENT_KEYWORDS = ("asap", "urgent", "week")
TOP_FEATURES_LIMIT = 5


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_urgent(intent: Intent) -> bool:
    timeframe = intent.timeframe.lower()
    return any(keyword in timeframe for keyword in URGENT_KEYWORDS)


def in_budget_bucket(intent: Intent, bucket: BudgetBucket) -> bool:
    """
    Dashboard budget buckets. An intent lacking a bound the bucket
    needs is left out of that bucket.
    """
    low, high = intent.budget_min, intent.budget_max
    if bucket == "all":
        return True
    if bucket == "under-500":
        return high is not None and high < 500
    if bucket == "500-1000":
        return low is not None and high is not None and low >= 500 and high <= 1000
    if bucket == "1000-2000":
        return low is not None and high is not None and low >= 1000 and high <= 2000
    if bucket == "over-2000":
        return low is not None and low > 2000
    return False


def in_timeframe_bucket(intent: Intent, bucket: TimeframeBucket) -> bool:
    timeframe = intent.timeframe.lower()
    if bucket == "all":
        return True
    if bucket == "week":
        return "week" in timeframe
    if bucket == "month":
        return "month" in timeframe
    if bucket == "ASAP":
        return "asap" in timeframe or "urgent" in timeframe
    return False


def apply_buckets(
    intents: Iterable[Intent],
    budget_bucket: BudgetBucket = "all",
    timeframe_bucket: TimeframeBucket = "all",
) -> list[Intent]:
    return [
        i
        for i in intents
        if in_budget_bucket(i, budget_bucket) and in_timeframe_bucket(i, timeframe_bucket)
    ]


def average_budget(intents: list[Intent]) -> float:
    """Mean of budget midpoints over intents that carry both bounds; 0 if none do."""
    midpoints = [
        (i.budget_min + i.budget_max) / 2
        for i in intents
        if i.budget_min is not None and i.budget_max is not None
    ]
    if not midpoints:
        return 0.0
    return math.fsum(midpoints) / len(midpoints)


def top_features(intents: list[Intent], limit: int = TOP_FEATURES_LIMIT) -> list[tuple[str, int]]:
    # Counter keeps first-seen order and most_common() sorts stably,
    # so ties stay in first-seen order.
    counts = Counter(feature for i in intents for feature in i.features or [])
    return counts.most_common(limit)


def compute_market_analytics(intents: list[Intent]) -> MarketAnalytics:
    total = len(intents)
    urgent = sum(1 for i in intents if is_urgent(i))
    urgency_rate = round_half_up(urgent / total * 100) if total else 0

    return MarketAnalytics(
        total_intents=total,
        avg_budget=round_half_up(average_budget(intents)),
        urgent_intents=urgent,
        urgency_rate=urgency_rate,
        top_features=top_features(intents),
    )
