# intentmarket/routers/market.py
from fastapi import APIRouter, Depends

from intentmarket.database import get_storage
from intentmarket.repositories.base import Storage
from intentmarket.schemas.stats import MarketAnalytics
from intentmarket.services.stats_service import StatsService

router = APIRouter(prefix="/market", tags=["Market"])

service = StatsService()


@router.get("/analytics", response_model=MarketAnalytics)
def get_market_analytics(
    storage: Storage = Depends(get_storage),
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    budget_filter: str | None = None,
    timeframe_filter: str | None = None,
):
    """
    Aggregated demand over active intents, for the offer builder.

    Query params (optional):
      - category, region, search
      - budget_filter: all | under-500 | 500-1000 | 1000-2000 | over-2000
      - timeframe_filter: all | week | month | ASAP
    """
    return service.get_market_analytics(
        storage,
        category=category,
        region=region,
        search=search,
        budget_filter=budget_filter,
        timeframe_filter=timeframe_filter,
    )
