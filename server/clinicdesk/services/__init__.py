"""Services for ClinicDesk."""

from .cache import Cache, CacheSweeper, SingleFlight
from .collections import CollectionFetcher
from .dashboard import DashboardService

__all__ = ["Cache", "CacheSweeper", "SingleFlight", "CollectionFetcher", "DashboardService"]
