"""Redirect endpoint behavior tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from fuselink.dependencies import get_link_service
from fuselink.exceptions import StorageError
from fuselink.main import app

ALIAS = "\U0001F355\U0001F680\u2615"


@pytest.mark.asyncio
async def test_redirect_valid_id(client: AsyncClient) -> None:
    create_resp = await client.post("/api/shorten", json={"url": "https://www.google.com"})
    link_id = create_resp.json()["id"]

    response = await client.get(f"/{link_id}", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://www.google.com"


@pytest.mark.asyncio
async def test_redirect_unknown_id(client: AsyncClient) -> None:
    response = await client.get(f"/{ALIAS}", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_redirect_with_custom_alias(client: AsyncClient) -> None:
    await client.post("/api/shorten", json={"url": "https://www.github.com", "custom_alias": ALIAS})
    response = await client.get(f"/{ALIAS}", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_redirect_click_fuse_burns_out(client: AsyncClient, cache_entries: dict) -> None:
    create_resp = await client.post(
        "/api/shorten",
        json={"url": "https://www.python.org", "destruction": {"kind": "click_fuse", "remaining": 1}},
    )
    link_id = create_resp.json()["id"]
    cache_entries.clear()

    first = await client.get(f"/{link_id}", follow_redirects=False)
    second = await client.get(f"/{link_id}", follow_redirects=False)

    assert first.status_code == 307
    assert second.status_code == 404


@pytest.mark.asyncio
async def test_redirect_expired_time_bomb_is_gone(client: AsyncClient, cache_entries: dict) -> None:
    create_resp = await client.post(
        "/api/shorten",
        json={
            "url": "https://secret.example.com/launch-codes",
            "destruction": {"kind": "time_bomb", "deadline": "2001-01-01T00:00:00Z"},
        },
    )
    link_id = create_resp.json()["id"]
    cache_entries.clear()

    response = await client.get(f"/{link_id}", follow_redirects=False)

    assert response.status_code == 410
    assert response.json() == {"detail": "Link expired"}
    assert "secret.example.com" not in response.text


@pytest.mark.asyncio
async def test_redirect_internal_error_hides_details(client: AsyncClient) -> None:
    service = AsyncMock()
    service.consume = AsyncMock(side_effect=StorageError("OperationalError: could not connect to 10.0.0.3"))
    app.dependency_overrides[get_link_service] = lambda: service

    response = await client.get(f"/{ALIAS}", follow_redirects=False)

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert "10.0.0.3" not in response.text
