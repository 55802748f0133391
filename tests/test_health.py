"""Health endpoint tests."""

import pytest
import redis.asyncio as redis
from httpx import AsyncClient

from fuselink.enums import HealthStatus


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.HEALTHY.value


@pytest.mark.asyncio
async def test_health_check_reports_cache_outage(client: AsyncClient, cache_client) -> None:
    cache_client.ping.side_effect = redis.ConnectionError("Connection refused")

    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.UNHEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.UNHEALTHY.value
