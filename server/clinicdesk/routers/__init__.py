"""API Routers for ClinicDesk."""

from .stats import router as stats_router
from .collections import router as collections_router
from .cache import router as cache_router

__all__ = [
    "stats_router",
    "collections_router",
    "cache_router",
]
