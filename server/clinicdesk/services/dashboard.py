"""Dashboard statistics, cached as one aggregate."""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from . import cache_keys
from .cache import Cache
from .document_store import CollectionQuery, DocumentStore, DocumentStoreError, WhereCondition

logger = logging.getLogger(__name__)


@dataclass
class DashboardStats:
    total_products: int = 0
    total_visitors: int = 0
    total_sales: int = 0
    monthly_sales: int = 0
    monthly_revenue: float = 0

    def to_dict(self) -> dict:
        return asdict(self)


class DashboardService:
    """Counts and current-month revenue for the dashboard."""

    def __init__(self, store: DocumentStore, cache: Cache, ttl: float = 10 * 60):
        self.store = store
        self.cache = cache
        self.ttl = ttl

    async def get_stats(self, refresh: bool = False, now: Optional[datetime] = None) -> DashboardStats:
        """Get dashboard stats, from cache unless refresh is requested."""
        if not refresh:
            cached = self.cache.get(cache_keys.DASHBOARD_STATS)
            if cached is not None:
                return cached

        # Stored timestamps are timezone-aware; naive times are local
        now = now or datetime.now()
        if now.tzinfo is None:
            now = now.astimezone()
        first_day_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        try:
            # Just count, don't fetch all data
            total_products, total_visitors, total_sales = await asyncio.gather(
                self.store.count("products"),
                self.store.count("visitors"),
                self.store.count("sales"),
            )

            monthly = await self.store.run_query(
                "sales",
                CollectionQuery(
                    where=[WhereCondition("saleDate", ">=", first_day_of_month)],
                    order_by="saleDate",
                    direction="desc",
                ),
            )
        except DocumentStoreError:
            logger.exception("Error fetching dashboard data")
            raise

        monthly_revenue = sum(sale.get("totalAmount") or 0 for sale in monthly)

        stats = DashboardStats(
            total_products=total_products,
            total_visitors=total_visitors,
            total_sales=total_sales,
            monthly_sales=len(monthly),
            monthly_revenue=monthly_revenue,
        )
        self.cache.set(cache_keys.DASHBOARD_STATS, stats, self.ttl)
        logger.info("Dashboard stats refreshed: %s", stats)
        return stats
