"""ClinicDesk FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .logging_config import configure_logging
from .routers import cache_router, collections_router, stats_router
from .services.cache import Cache, CacheSweeper
from .services.collections import CollectionFetcher
from .services.dashboard import DashboardService
from .services.document_store import (
    DocumentStore,
    DocumentStoreError,
    FirestoreRestStore,
    InMemoryDocumentStore,
)


def create_store(settings: Settings) -> DocumentStore:
    """Build the document store selected by settings."""
    if settings.backend == "firestore":
        return FirestoreRestStore(
            project_id=settings.firestore_project_id,
            database=settings.firestore_database,
            api_key=settings.firestore_api_key,
            timeout=settings.firestore_timeout,
        )
    return InMemoryDocumentStore()


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    store = store or create_store(settings)
    cache = Cache(default_ttl=settings.default_cache_ttl)
    sweeper = CacheSweeper(
        cache,
        interval=settings.cache_sweep_interval,
        initial_delay=settings.cache_sweep_initial_delay,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            if isinstance(store, FirestoreRestStore):
                await store.aclose()

    app = FastAPI(
        title="ClinicDesk",
        description="Cached data access for the ClinicDesk business dashboard",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.sweeper = sweeper
    app.state.fetcher = CollectionFetcher(store, cache)
    app.state.dashboard = DashboardService(store, cache, ttl=settings.dashboard_cache_ttl)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocumentStoreError)
    async def document_store_error(request: Request, exc: DocumentStoreError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    # Include routers with /api prefix
    app.include_router(stats_router, prefix="/api")
    app.include_router(collections_router, prefix="/api")
    app.include_router(cache_router, prefix="/api")

    return app


def run():
    """Run the server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    print(f"ClinicDesk running at http://localhost:{settings.port}")
    uvicorn.run(
        "clinicdesk.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
