"""
Article service: business logic for the Article aggregate, favorites and
tags.

Design notes
------------
- Reads use ``joinedload`` for the author (many-to-one) and
  ``selectinload`` for tags (many-to-many).  Favorite counts, the
  caller's favorites and the caller's follows are fetched with one
  batched query each (see ``_article_views``), so a page of N articles
  costs a fixed number of round trips.
- Re-fetches run with ``populate_existing`` because relationships are
  ``noload`` and objects written earlier in the same session would
  otherwise keep their stale, unloaded collections.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
from collections.abc import Sequence

from slugify import slugify
from sqlalchemy import Select, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.cache import cache
from conduit.database import after_commit
from conduit.exceptions import ConduitError, ConflictError, ForbiddenError, NotFoundError
from conduit.models import SLUG_MAX_LENGTH, Article, Comment, Favorite, Follow, Tag, article_tags, utcnow
from conduit.schemas import (
    ArticleCreate,
    ArticleOut,
    ArticleResponse,
    ArticleUpdate,
    MultipleArticlesResponse,
    TagsResponse,
)
from conduit.services.profile_service import following_ids, get_user_id_by_username, profile_out

logger = logging.getLogger(__name__)

TITLE_IN_USE = "Article title is already in use"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_slug(title: str) -> str:
    slug = slugify(title, max_length=SLUG_MAX_LENGTH, word_boundary=True)
    if not slug:
        raise ConduitError("title must contain at least one letter or digit", status_code=422)
    return slug


async def _slug_in_use(db: AsyncSession, slug: str) -> bool:
    q = select(Article.id).where(Article.slug == slug)
    return (await db.execute(q)).first() is not None


async def get_article_row(db: AsyncSession, slug: str) -> Article:
    """Return the bare Article row for *slug* (no relationships loaded)."""
    article = (
        await db.execute(select(Article).where(Article.slug == slug))
    ).scalar_one_or_none()
    if article is None:
        raise NotFoundError("Article not found")
    return article


async def _load_article(db: AsyncSession, slug: str) -> Article:
    q = (
        select(Article)
        .where(Article.slug == slug)
        .options(joinedload(Article.author), selectinload(Article.tags))
        .execution_options(populate_existing=True)
    )
    article = (await db.execute(q)).unique().scalar_one_or_none()
    if article is None:
        raise NotFoundError("Article not found")
    return article


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag rows for each name in *tag_names*, creating the missing
    ones inside the caller's transaction.
    """
    if not tag_names:
        return []
    existing = (
        await db.execute(select(Tag).where(Tag.name.in_(tag_names)))
    ).scalars().all()
    by_name = {tag.name: tag for tag in existing}
    missing = [Tag(name=name) for name in tag_names if name not in by_name]
    if missing:
        db.add_all(missing)
        await db.flush()
        by_name.update((tag.name, tag) for tag in missing)
    return [by_name[name] for name in tag_names]


async def _flush_or_conflict(db: AsyncSession) -> None:
    # A concurrent writer can still take the slug between check and insert.
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError(TITLE_IN_USE)


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------

async def _article_views(
    db: AsyncSession, articles: Sequence[Article], viewer_id: int | None
) -> list[ArticleOut]:
    """
    Shape *articles* (author and tags already loaded) into ``ArticleOut``
    as seen by *viewer_id*.
    """
    if not articles:
        return []
    ids = [a.id for a in articles]

    counts_q = (
        select(Favorite.article_id, func.count())
        .where(Favorite.article_id.in_(ids))
        .group_by(Favorite.article_id)
    )
    counts = {article_id: n for article_id, n in (await db.execute(counts_q)).all()}

    favorited: set[int] = set()
    if viewer_id is not None:
        fav_q = select(Favorite.article_id).where(
            Favorite.user_id == viewer_id, Favorite.article_id.in_(ids)
        )
        favorited = set((await db.execute(fav_q)).scalars().all())

    followed = await following_ids(db, viewer_id, {a.author_id for a in articles})

    return [
        ArticleOut(
            slug=a.slug,
            title=a.title,
            description=a.description,
            body=a.body,
            tag_list=sorted(t.name for t in a.tags),
            created_at=a.created_at,
            updated_at=a.updated_at,
            favorited=a.id in favorited,
            favorites_count=counts.get(a.id, 0),
            author=profile_out(a.author, a.author_id in followed),
        )
        for a in articles
    ]


async def _paginate(
    db: AsyncSession, q: Select, viewer_id: int | None, limit: int, offset: int
) -> MultipleArticlesResponse:
    """Run *q* as COUNT + one page (newest first) and shape the result."""
    total: int = (
        await db.execute(select(func.count()).select_from(q.subquery()))
    ).scalar_one()

    page_q = (
        q.options(joinedload(Article.author), selectinload(Article.tags))
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    articles = (await db.execute(page_q)).unique().scalars().all()
    return MultipleArticlesResponse(
        articles=await _article_views(db, articles, viewer_id),
        articles_count=total,
    )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    viewer_id: int | None = None,
    *,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> MultipleArticlesResponse:
    """
    Return one page of articles, most recent first, filtered by *tag*,
    *author* username and/or the username that *favorited* them.

    ``articles_count`` is the number of matches before pagination.
    Unknown usernames in the filters raise ``NotFoundError``.
    """
    q = select(Article)
    if tag:
        q = q.where(Article.tags.any(Tag.name == tag))
    if author:
        author_id = await get_user_id_by_username(db, author)
        q = q.where(Article.author_id == author_id)
    if favorited:
        fan_id = await get_user_id_by_username(db, favorited)
        q = q.where(
            Article.id.in_(select(Favorite.article_id).where(Favorite.user_id == fan_id))
        )
    return await _paginate(db, q, viewer_id, limit, offset)


async def feed_articles(
    db: AsyncSession, viewer_id: int, limit: int = 20, offset: int = 0
) -> MultipleArticlesResponse:
    """Return articles written by the users *viewer_id* follows."""
    followed = select(Follow.followed_id).where(Follow.follower_id == viewer_id)
    q = select(Article).where(Article.author_id.in_(followed))
    return await _paginate(db, q, viewer_id, limit, offset)


async def get_article(
    db: AsyncSession, slug: str, viewer_id: int | None = None
) -> ArticleResponse:
    article = await _load_article(db, slug)
    (view,) = await _article_views(db, [article], viewer_id)
    return ArticleResponse(article=view)


async def create_article(db: AsyncSession, user_id: int, data: ArticleCreate) -> ArticleResponse:
    """
    Create an article written by *user_id*.

    The slug is derived from the title; a title whose slug is already
    taken raises ``ConflictError``.
    """
    slug = make_slug(data.title)
    if await _slug_in_use(db, slug):
        raise ConflictError(TITLE_IN_USE)

    article = Article(
        slug=slug,
        title=data.title,
        description=data.description,
        body=data.body,
        author_id=user_id,
        tags=await _resolve_tags(db, data.tag_list),
    )
    db.add(article)
    await _flush_or_conflict(db)

    if data.tag_list:
        after_commit(db, cache.invalidate_tags)
    logger.info("Article created: %s (author_id=%d)", slug, user_id)
    return await get_article(db, slug, user_id)


async def update_article(
    db: AsyncSession, user_id: int, slug: str, data: ArticleUpdate
) -> ArticleResponse:
    """
    Apply the fields set in *data* to the article at *slug*.

    Only the author may update.  A new title regenerates the slug, and
    a supplied ``tag_list`` replaces the whole tag set.
    """
    article = await _load_article(db, slug)
    if article.author_id != user_id:
        logger.warning("Rejected update of %s by user %d", slug, user_id)
        raise ForbiddenError("You can only edit your own articles")

    changes = data.model_dump(exclude_unset=True)
    tag_names: list[str] | None = changes.pop("tag_list", None)
    changes = {field: value for field, value in changes.items() if value is not None}

    # Resolve tags before touching the slug: the tag SELECT autoflushes.
    tags = await _resolve_tags(db, tag_names) if tag_names is not None else None

    if "title" in changes:
        new_slug = make_slug(changes["title"])
        if new_slug != article.slug and await _slug_in_use(db, new_slug):
            raise ConflictError(TITLE_IN_USE)
        article.slug = new_slug

    for field, value in changes.items():
        setattr(article, field, value)

    if tags is not None:
        article.tags = tags

    if changes or tag_names is not None:
        article.updated_at = utcnow()
    await _flush_or_conflict(db)

    if tag_names:
        after_commit(db, cache.invalidate_tags)
    return await get_article(db, article.slug, user_id)


async def delete_article(db: AsyncSession, user_id: int, slug: str) -> None:
    """
    Delete the article at *slug* together with its tag links, comments
    and favorites.  Only the author may delete.
    """
    article = await get_article_row(db, slug)
    if article.author_id != user_id:
        logger.warning("Rejected delete of %s by user %d", slug, user_id)
        raise ForbiddenError("You can only delete your own articles")

    await db.execute(delete(article_tags).where(article_tags.c.article_id == article.id))
    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.execute(delete(Favorite).where(Favorite.article_id == article.id))
    await db.delete(article)
    await db.flush()
    logger.info("Article deleted: %s", slug)


async def favorite_article(db: AsyncSession, user_id: int, slug: str) -> ArticleResponse:
    """Favorite the article at *slug*; favoriting twice is a no-op."""
    article = await get_article_row(db, slug)
    exists_q = select(Favorite.article_id).where(
        Favorite.user_id == user_id, Favorite.article_id == article.id
    )
    if (await db.execute(exists_q)).first() is None:
        db.add(Favorite(user_id=user_id, article_id=article.id))
        await db.flush()
    return await get_article(db, slug, user_id)


async def unfavorite_article(db: AsyncSession, user_id: int, slug: str) -> ArticleResponse:
    article = await get_article_row(db, slug)
    await db.execute(
        delete(Favorite).where(Favorite.user_id == user_id, Favorite.article_id == article.id)
    )
    return await get_article(db, slug, user_id)


async def get_tags(db: AsyncSession) -> TagsResponse:
    """Return every tag name, sorted, through the Redis cache-aside layer."""
    cached = await cache.get_tags()
    if cached is not None:
        return TagsResponse(tags=cached)

    names = list((await db.execute(select(Tag.name).order_by(Tag.name))).scalars().all())
    await cache.set_tags(names)
    return TagsResponse(tags=names)
