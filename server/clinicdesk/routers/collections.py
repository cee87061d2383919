"""Collection list endpoints backed by the data cache."""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query

from ..config import Settings
from ..dependencies import get_app_settings, get_fetcher
from ..services.collections import (
    CollectionFetcher,
    CollectionOptions,
    centers_options,
    products_options,
)

router = APIRouter(tags=["collections"])


async def _list(fetcher: CollectionFetcher, collection: str, options: CollectionOptions, refresh: Optional[str]):
    if refresh == "1":
        items = await fetcher.refresh(collection, options)
    else:
        items = await fetcher.fetch(collection, options)
    return {"collection": collection, "count": len(items), "items": items}


@router.get("/products")
async def get_products(
    refresh: Optional[str] = Query(None),
    fetcher: CollectionFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_app_settings),
):
    """Products ordered by name."""
    options = products_options(settings.products_cache_ttl)
    return await _list(fetcher, "products", options, refresh)


@router.get("/centers")
async def get_centers(
    refresh: Optional[str] = Query(None),
    fetcher: CollectionFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_app_settings),
):
    """Centers ordered by name."""
    options = centers_options(settings.centers_cache_ttl)
    return await _list(fetcher, "centers", options, refresh)


@router.get("/collections/{name}")
async def get_collection(
    name: str,
    order_by: Optional[str] = Query(None),
    direction: Literal["asc", "desc"] = Query("desc"),
    refresh: Optional[str] = Query(None),
    fetcher: CollectionFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_app_settings),
):
    """All documents in a collection, served from cache when fresh."""
    options = CollectionOptions(
        cache_key=f"{name}_{order_by}_{direction}" if order_by else name,
        cache_ttl=settings.default_cache_ttl,
        order_by_field=order_by,
        order_direction=direction,
    )
    return await _list(fetcher, name, options, refresh)


@router.get("/collections/{name}/page")
async def get_collection_page(
    name: str,
    page: int = Query(0, ge=0),
    page_size: Optional[int] = Query(None, ge=1, le=500),
    order_by: Optional[str] = Query(None),
    direction: Literal["asc", "desc"] = Query("desc"),
    fetcher: CollectionFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_app_settings),
):
    """One page of a collection. Not cached."""
    options = CollectionOptions(
        enable_pagination=True,
        page_size=page_size or settings.default_page_size,
        order_by_field=order_by,
        order_direction=direction,
    )
    result = await fetcher.fetch_page(name, options, page)

    return {
        "collection": name,
        "items": result.items,
        "page": result.page,
        "pageSize": result.page_size,
        "hasMore": result.has_more,
    }
