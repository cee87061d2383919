"""Cache inspection and invalidation endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from ..dependencies import get_cache
from ..services.cache import Cache, PatternError

router = APIRouter(prefix="/cache", tags=["cache"])


class InvalidateRequest(BaseModel):
    key: Optional[str] = Field(None, description="Exact cache key to drop")
    pattern: Optional[str] = Field(None, description="Regular expression matched against keys")

    @model_validator(mode="after")
    def exactly_one(self):
        if (self.key is None) == (self.pattern is None):
            raise ValueError("Provide exactly one of 'key' or 'pattern'")
        return self


@router.get("/stats")
async def get_cache_stats(cache: Cache = Depends(get_cache)):
    """Cache size and hit/miss counters."""
    return cache.stats()


@router.post("/invalidate")
async def invalidate(request: InvalidateRequest, cache: Cache = Depends(get_cache)):
    """Drop one key, or every key matching a pattern."""
    if request.key is not None:
        removed = 1 if cache.has(request.key) else 0
        cache.invalidate(request.key)
        return {"removed": removed}

    try:
        removed = cache.invalidate_pattern(request.pattern)
    except PatternError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"removed": removed}


@router.post("/cleanup")
async def cleanup(cache: Cache = Depends(get_cache)):
    """Evict expired entries now instead of waiting for the sweeper."""
    return {"removed": cache.cleanup(), "size": cache.size()}


@router.delete("")
async def clear(cache: Cache = Depends(get_cache)):
    """Clear all cache entries."""
    cache.clear()
    return {"status": "cleared"}
