"""FastAPI dependencies resolving the per-app cache and services from app.state."""

from fastapi import Request

from .config import Settings
from .services.cache import Cache
from .services.collections import CollectionFetcher
from .services.dashboard import DashboardService
from .services.document_store import DocumentStore


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_fetcher(request: Request) -> CollectionFetcher:
    return request.app.state.fetcher


def get_dashboard(request: Request) -> DashboardService:
    return request.app.state.dashboard


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
