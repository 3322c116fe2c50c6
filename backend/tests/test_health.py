"""Tests for the health check endpoint."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestHealthEndpoint:
    """Test suite for health check functionality."""

    async def test_healthy(self, async_client: AsyncClient, test_settings):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": test_settings.app_version,
            "database": "connected",
            "cache": "connected",
        }

    async def test_cache_down_returns_503(self, async_client: AsyncClient, cache):
        cache.fail = True

        response = await async_client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["database"] == "connected"
        assert data["cache"] == "disconnected"

    async def test_not_rate_limited(self, async_client: AsyncClient):
        """Health is outside /api/ and carries no rate limit headers."""
        response = await async_client.get("/health")

        assert "X-RateLimit-Limit" not in response.headers
