"""Health check and dashboard endpoints."""

import platform
import sys
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..dependencies import get_cache, get_dashboard, get_store
from ..services.cache import Cache
from ..services.dashboard import DashboardService
from ..services.document_store import DocumentStore

router = APIRouter(tags=["stats"])


@router.get("/health")
async def health_check(
    cache: Cache = Depends(get_cache),
    store: DocumentStore = Depends(get_store),
):
    """Health check and status endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "backend": store.name,
        "cacheSize": cache.size(),
        "platform": platform.system().lower(),
        "pythonVersion": sys.version,
    }


@router.get("/dashboard")
async def get_dashboard_stats(
    refresh: Optional[str] = Query(None),
    dashboard: DashboardService = Depends(get_dashboard),
):
    """Get dashboard counts and current-month revenue."""
    stats = await dashboard.get_stats(refresh=refresh == "1")

    return {
        "totalProducts": stats.total_products,
        "totalVisitors": stats.total_visitors,
        "totalSales": stats.total_sales,
        "monthlySales": stats.monthly_sales,
        "monthlyRevenue": stats.monthly_revenue,
    }
