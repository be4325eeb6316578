"""Pydantic schemas for cache operations endpoints."""

from pydantic import BaseModel, Field


class CacheStatsResponse(BaseModel):
    """Response cache counters."""

    backend: str = Field(description="Active storage backend: memory or redis")
    fallback_active: bool = Field(
        description="True if the configured backend was unreachable and memory is used instead"
    )
    fallback_reason: str | None = None
    entries: int | None = Field(description="Live entries, or null if the backend did not answer")
    hits: int
    misses: int
    errors: int
    default_ttl: int
