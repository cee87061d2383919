"""Cached collection fetching for list and report views."""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional

from . import cache_keys
from .cache import DEFAULT_TTL, Cache, SingleFlight
from .document_store import CollectionQuery, Direction, DocumentStore, DocumentStoreError, WhereCondition

logger = logging.getLogger(__name__)


@dataclass
class CollectionOptions:
    """How a collection is queried and cached.

    Only ``cache_key`` and ``cache_ttl`` concern the cache; the rest shape the
    backend query.
    """
    cache_key: Optional[str] = None  # defaults to the collection name
    cache_ttl: float = DEFAULT_TTL
    enable_pagination: bool = False
    page_size: int = 25
    order_by_field: Optional[str] = None
    order_direction: Direction = "desc"
    where_conditions: list[WhereCondition] = field(default_factory=list)

    def key_for(self, collection: str) -> str:
        return self.cache_key or collection


@dataclass
class Page:
    items: list[dict]
    page: int
    page_size: int
    has_more: bool


def products_options(ttl: float = 10 * 60) -> CollectionOptions:
    # Products don't change often
    return CollectionOptions(
        cache_key=cache_keys.PRODUCTS,
        cache_ttl=ttl,
        order_by_field="name",
        order_direction="asc",
    )


def centers_options(ttl: float = 15 * 60) -> CollectionOptions:
    # Centers rarely change
    return CollectionOptions(
        cache_key=cache_keys.CENTERS,
        cache_ttl=ttl,
        order_by_field="name",
        order_direction="asc",
    )


class CollectionFetcher:
    """Fetch collections from the document store, remembering results in a cache."""

    def __init__(
        self,
        store: DocumentStore,
        cache: Cache,
        single_flight: Optional[SingleFlight] = None,
    ):
        self.store = store
        self.cache = cache
        self.single_flight = single_flight or SingleFlight()

    def _build_query(self, options: CollectionOptions, page: Optional[int] = None) -> CollectionQuery:
        query = CollectionQuery(
            where=list(options.where_conditions),
            order_by=options.order_by_field,
            direction=options.order_direction,
        )
        if options.enable_pagination:
            query.limit = options.page_size
            query.offset = (page or 0) * options.page_size
        return query

    async def _query(self, collection: str, query: CollectionQuery) -> list[dict]:
        try:
            return await self.store.run_query(collection, query)
        except DocumentStoreError:
            logger.exception("Error fetching %s", collection)
            raise

    async def fetch(self, collection: str, options: Optional[CollectionOptions] = None) -> list[dict]:
        """All documents of a collection. Served from cache unless paginated."""
        options = options or CollectionOptions()
        if options.enable_pagination:
            page = await self.fetch_page(collection, options, 0)
            return page.items

        key = options.key_for(collection)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        return await self.single_flight.do(key, lambda: self._load(collection, options))

    async def _load(self, collection: str, options: CollectionOptions) -> list[dict]:
        docs = await self._query(collection, self._build_query(options))
        self.cache.set(options.key_for(collection), docs, options.cache_ttl)
        return docs

    async def fetch_page(self, collection: str, options: CollectionOptions, page: int = 0) -> Page:
        """One page of a collection. Paginated reads bypass the cache."""
        if page < 0:
            raise ValueError("page must be >= 0")
        if not options.enable_pagination:
            options = replace(options, enable_pagination=True)

        docs = await self._query(collection, self._build_query(options, page))
        return Page(
            items=docs,
            page=page,
            page_size=options.page_size,
            has_more=len(docs) == options.page_size,
        )

    async def refresh(self, collection: str, options: Optional[CollectionOptions] = None) -> list[dict]:
        """Drop the cached copy and query the store again.

        Does not join a fetch already in flight for the same key, since that
        one may have started before the data changed.
        """
        options = options or CollectionOptions()
        if options.enable_pagination:
            return await self.fetch(collection, options)

        self.cache.invalidate(options.key_for(collection))
        return await self._load(collection, options)

    def invalidate_collection(self, collection: str) -> int:
        """Forget every cached key that starts with the collection name."""
        return self.cache.invalidate_pattern("^" + re.escape(collection))
