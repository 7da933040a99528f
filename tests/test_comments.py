"""
Comment endpoint tests: adding, listing and deleting comments, including
the author-only delete rule and comments addressed through the wrong
article.
"""
import pytest
from httpx import AsyncClient


async def _comment(client: AsyncClient, slug: str, headers: dict, body: str) -> dict:
    resp = await client.post(
        f"/api/articles/{slug}/comments", headers=headers, json={"comment": {"body": body}}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["comment"]


@pytest.mark.asyncio
async def test_add_comment(async_client: AsyncClient, register, create_article):
    _, headers = await register("commenter")
    await create_article(headers, "Discuss")

    comment = await _comment(async_client, "discuss", headers, "Thank you so much!")
    assert comment["body"] == "Thank you so much!"
    assert isinstance(comment["id"], int)
    assert comment["author"]["username"] == "commenter"
    assert comment["author"]["following"] is False
    assert comment["createdAt"].endswith("Z")


@pytest.mark.asyncio
async def test_list_comments_oldest_first(async_client: AsyncClient, register, create_article):
    _, headers = await register("chatty")
    await create_article(headers, "Thread")
    for i in range(3):
        await _comment(async_client, "thread", headers, f"Comment {i}")

    resp = await async_client.get("/api/articles/thread/comments")
    assert resp.status_code == 200
    bodies = [c["body"] for c in resp.json()["comments"]]
    assert bodies == ["Comment 0", "Comment 1", "Comment 2"]


@pytest.mark.asyncio
async def test_list_comments_empty(async_client: AsyncClient, register, create_article):
    _, headers = await register("quiet")
    await create_article(headers, "Silence")
    resp = await async_client.get("/api/articles/silence/comments")
    assert resp.json() == {"comments": []}


@pytest.mark.asyncio
async def test_list_comments_reports_following(
    async_client: AsyncClient, register, create_article
):
    _, author = await register("host")
    _, guest = await register("guest")
    await create_article(author, "Party")
    await _comment(async_client, "party", author, "Welcome")
    await async_client.post("/api/profiles/host/follow", headers=guest)

    comments = (
        await async_client.get("/api/articles/party/comments", headers=guest)
    ).json()["comments"]
    assert comments[0]["author"]["following"] is True


@pytest.mark.asyncio
async def test_comment_on_nonexistent_article(async_client: AsyncClient, register):
    _, headers = await register("lost")
    resp = await async_client.post(
        "/api/articles/missing/comments", headers=headers, json={"comment": {"body": "hi"}}
    )
    assert resp.status_code == 404
    assert (await async_client.get("/api/articles/missing/comments")).status_code == 404


@pytest.mark.asyncio
async def test_comment_requires_body(async_client: AsyncClient, register, create_article):
    _, headers = await register("mute")
    await create_article(headers, "Needs Words")
    resp = await async_client.post(
        "/api/articles/needs-words/comments", headers=headers, json={"comment": {"body": ""}}
    )
    assert resp.status_code == 422
    assert resp.json()["errors"]["body"] == ["body String should have at least 1 character"]


@pytest.mark.asyncio
async def test_comment_requires_auth(async_client: AsyncClient, register, create_article):
    _, headers = await register("gatekeeper")
    await create_article(headers, "Members Only")
    resp = await async_client.post(
        "/api/articles/members-only/comments", json={"comment": {"body": "sneaky"}}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_delete_comment(async_client: AsyncClient, register, create_article):
    _, headers = await register("regretful")
    await create_article(headers, "Oops")
    comment = await _comment(async_client, "oops", headers, "I take it back")

    resp = await async_client.delete(f"/api/articles/oops/comments/{comment['id']}", headers=headers)
    assert resp.status_code == 204
    assert (await async_client.get("/api/articles/oops/comments")).json() == {"comments": []}


@pytest.mark.asyncio
async def test_delete_comment_by_other_user_is_forbidden(
    async_client: AsyncClient, register, create_article
):
    _, author = await register("speaker")
    _, other = await register("heckler")
    await create_article(author, "Speech")
    comment = await _comment(async_client, "speech", author, "Keep this")

    resp = await async_client.delete(f"/api/articles/speech/comments/{comment['id']}", headers=other)
    assert resp.status_code == 403
    comments = (await async_client.get("/api/articles/speech/comments")).json()["comments"]
    assert len(comments) == 1


@pytest.mark.asyncio
async def test_delete_comment_through_wrong_article(
    async_client: AsyncClient, register, create_article
):
    _, headers = await register("crossposter")
    await create_article(headers, "Article A")
    await create_article(headers, "Article B")
    comment = await _comment(async_client, "article-a", headers, "on A")

    resp = await async_client.delete(
        f"/api/articles/article-b/comments/{comment['id']}", headers=headers
    )
    assert resp.status_code == 404
    assert resp.json() == {"errors": {"body": ["Comment not found"]}}


@pytest.mark.asyncio
async def test_delete_missing_comment(async_client: AsyncClient, register, create_article):
    _, headers = await register("tidy")
    await create_article(headers, "Clean")
    resp = await async_client.delete("/api/articles/clean/comments/999", headers=headers)
    assert resp.status_code == 404
