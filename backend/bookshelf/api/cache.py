"""Response cache operations endpoints."""

import logging

from fastapi import APIRouter, Depends

from bookshelf.api.deps import get_config, get_current_user, get_response_cache
from bookshelf.core import Settings
from bookshelf.models.user import User
from bookshelf.schemas.cache import CacheStatsResponse
from bookshelf.schemas.common import Envelope
from bookshelf.services.errors import ForbiddenError
from bookshelf.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=Envelope[CacheStatsResponse])
async def cache_stats(
    current_user: User = Depends(get_current_user),
    cache: ResponseCache = Depends(get_response_cache),
) -> Envelope[CacheStatsResponse]:
    """Backend in use, fallback state and hit/miss counters."""
    stats = await cache.stats()
    return Envelope(message="Cache statistics", data=CacheStatsResponse(**stats))


@router.delete("", response_model=Envelope[None])
async def flush_cache(
    current_user: User = Depends(get_current_user),
    cache: ResponseCache = Depends(get_response_cache),
    config: Settings = Depends(get_config),
) -> Envelope[None]:
    """Drop every cached response. Disabled in production."""
    if not config.cache_flush_enabled:
        raise ForbiddenError(
            "Cache flush disabled",
            {"cache": "Flushing the cache is not allowed in production"},
        )
    await cache.flush()
    logger.warning(f"Response cache flushed by {current_user.email}")
    return Envelope(message="Cache flushed")
