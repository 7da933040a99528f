"""
Favorite and tag endpoint tests.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_article(async_client: AsyncClient, register, create_article):
    _, author = await register("creator")
    _, fan = await register("admirer")
    await create_article(author, "Favorite Me")

    resp = await async_client.post("/api/articles/favorite-me/favorite", headers=fan)
    assert resp.status_code == 200
    article = resp.json()["article"]
    assert article["favorited"] is True
    assert article["favoritesCount"] == 1

    # The author sees the count but has not favorited it.
    article = (await async_client.get("/api/articles/favorite-me", headers=author)).json()["article"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 1


@pytest.mark.asyncio
async def test_favorite_twice_is_idempotent(async_client: AsyncClient, register, create_article):
    _, headers = await register("doubler")
    await create_article(headers, "Twice")

    await async_client.post("/api/articles/twice/favorite", headers=headers)
    resp = await async_client.post("/api/articles/twice/favorite", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["article"]["favoritesCount"] == 1


@pytest.mark.asyncio
async def test_favorites_count_across_users(async_client: AsyncClient, register, create_article):
    _, author = await register("hitmaker")
    await create_article(author, "Crowd Pleaser")
    for name in ("fan_a", "fan_b", "fan_c"):
        _, headers = await register(name)
        await async_client.post("/api/articles/crowd-pleaser/favorite", headers=headers)

    article = (await async_client.get("/api/articles/crowd-pleaser")).json()["article"]
    assert article["favoritesCount"] == 3


@pytest.mark.asyncio
async def test_unfavorite_article(async_client: AsyncClient, register, create_article):
    _, headers = await register("fickle")
    await create_article(headers, "Maybe")
    await async_client.post("/api/articles/maybe/favorite", headers=headers)

    resp = await async_client.delete("/api/articles/maybe/favorite", headers=headers)
    assert resp.status_code == 200
    article = resp.json()["article"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 0

    # Unfavoriting again is a no-op.
    resp = await async_client.delete("/api/articles/maybe/favorite", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["article"]["favoritesCount"] == 0


@pytest.mark.asyncio
async def test_favorite_unknown_article(async_client: AsyncClient, register):
    _, headers = await register("searcher")
    resp = await async_client.post("/api/articles/nowhere/favorite", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_favorite_requires_auth(async_client: AsyncClient, register, create_article):
    _, headers = await register("private")
    await create_article(headers, "Guarded")
    resp = await async_client.post("/api/articles/guarded/favorite")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tags_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/tags")
    assert resp.status_code == 200
    assert resp.json() == {"tags": []}


@pytest.mark.asyncio
async def test_tags_are_unique_and_sorted(async_client: AsyncClient, register, create_article):
    _, headers = await register("curator")
    await create_article(headers, "One", tags=["zeta", "alpha"])
    await create_article(headers, "Two", tags=["alpha", "mid"])

    resp = await async_client.get("/api/tags")
    assert resp.json() == {"tags": ["alpha", "mid", "zeta"]}


@pytest.mark.asyncio
async def test_tags_survive_article_delete(async_client: AsyncClient, register, create_article):
    _, headers = await register("archivist")
    await create_article(headers, "Ephemeral", tags=["lasting"])
    await async_client.delete("/api/articles/ephemeral", headers=headers)

    resp = await async_client.get("/api/tags")
    assert resp.json() == {"tags": ["lasting"]}
