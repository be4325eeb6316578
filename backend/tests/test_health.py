"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

import pytest

pytestmark = pytest.mark.asyncio


class TestHealth:
    async def test_health_root(self, async_client):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["cache"] == "memory"

    async def test_api_health_needs_no_token(self, async_client):
        response = await async_client.get("/api/health")

        assert response.status_code == 200

    async def test_database_down(self, async_client):
        with patch(
            "bookshelf.api.health.check_db_connection", AsyncMock(return_value=False)
        ):
            response = await async_client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    async def test_cache_fallback_reported(self, async_client, app):
        app.state.response_cache.fallback_reason = "redis unreachable: ConnectionError"

        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["cache"] == "memory (fallback)"

    async def test_root(self, async_client):
        response = await async_client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Bookshelf"


class TestLifespan:
    async def test_startup_and_shutdown(self, app):
        async with app.router.lifespan_context(app):
            assert app.state.response_cache.backend.name == "memory"

    async def test_redis_unreachable_falls_back(self, test_settings, session_factory):
        from bookshelf.main import create_app

        config = test_settings.model_copy(
            update={"cache_backend": "redis", "redis_url": "redis://127.0.0.1:1/0"}
        )
        app = create_app(config, session_factory)

        async with app.router.lifespan_context(app):
            cache = app.state.response_cache
            assert cache.backend.name == "memory"
            assert cache.fallback_active
