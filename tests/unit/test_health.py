"""
Tests for the health endpoint.
"""

import pytest
from httpx import AsyncClient


class TestHealth:
    """Test application health reporting."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == "0.1.0"
        assert body["cache"] == "memory"
