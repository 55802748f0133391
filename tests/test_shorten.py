"""Shorten endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from fuselink.identifiers import is_identifier

ALIAS = "\U0001F355\U0001F680\u2615"


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"url": "https://www.google.com"})
    assert response.status_code == 201
    data = response.json()
    assert data["original_url"] == "https://www.google.com"
    assert is_identifier(data["id"])
    assert data["short_url"] == f"http://localhost:8080/{data['id']}"
    assert data["destruction"] == {"kind": "permanent"}
    assert data["created_at"]


@pytest.mark.asyncio
async def test_shorten_invalid_url(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"url": "not-a-url"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_empty_url(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"url": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_with_custom_alias(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"url": "https://www.github.com", "custom_alias": ALIAS})
    assert response.status_code == 201
    assert response.json()["id"] == ALIAS


@pytest.mark.asyncio
async def test_shorten_duplicate_custom_alias(client: AsyncClient) -> None:
    await client.post("/api/shorten", json={"url": "https://www.github.com", "custom_alias": ALIAS})
    response = await client.post("/api/shorten", json={"url": "https://www.example.com", "custom_alias": ALIAS})
    assert response.status_code == 409
    assert response.json() == {"detail": "Emoji combination already exists"}


@pytest.mark.asyncio
@pytest.mark.parametrize("alias", ["abc", "\U0001F355\U0001F680", "\U0001F355\U0001F680\u2615\u2615"])
async def test_shorten_rejects_malformed_alias(client: AsyncClient, alias: str) -> None:
    response = await client.post("/api/shorten", json={"url": "https://www.github.com", "custom_alias": alias})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_with_destruction_policy(client: AsyncClient) -> None:
    destruction = {
        "kind": "kombinatio",
        "left": {"kind": "click_fuse", "remaining": 1},
        "right": {"kind": "time_bomb", "deadline": "2030-01-01T00:00:00Z"},
    }
    response = await client.post("/api/shorten", json={"url": "https://www.python.org", "destruction": destruction})
    assert response.status_code == 201
    assert response.json()["destruction"] == destruction


@pytest.mark.asyncio
async def test_shorten_rejects_unknown_policy(client: AsyncClient) -> None:
    response = await client.post(
        "/api/shorten",
        json={"url": "https://www.python.org", "destruction": {"kind": "self_destruct"}},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_multiple_urls(client: AsyncClient) -> None:
    urls = [
        "https://www.google.com",
        "https://www.github.com",
        "https://www.python.org",
    ]
    ids = set()
    for url in urls:
        response = await client.post("/api/shorten", json={"url": url})
        assert response.status_code == 201
        ids.add(response.json()["id"])
    assert len(ids) == 3


@pytest.mark.asyncio
async def test_shorten_accepts_emoji_alias_outside_generator_ranges(client: AsyncClient) -> None:
    alias = "\u2764\u2728\u2705"
    response = await client.post("/api/shorten", json={"url": "https://www.python.org", "custom_alias": alias})
    assert response.status_code == 201
    assert response.json()["id"] == alias

    redirect = await client.get(f"/{alias}", follow_redirects=False)
    assert redirect.status_code == 307
    assert redirect.headers["location"] == "https://www.python.org"
