from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import (
    ArticleFilterParams,
    PaginationParams,
    get_current_user,
    get_current_user_optional,
)
from conduit.models import User
from conduit.schemas import (
    ArticleResponse,
    CommentResponse,
    MultipleArticlesResponse,
    MultipleCommentsResponse,
    NewArticleRequest,
    NewCommentRequest,
    UpdateArticleRequest,
)
from conduit.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


def _viewer_id(user: User | None) -> int | None:
    return user.id if user else None


@router.get("", response_model=MultipleArticlesResponse)
async def list_articles(
    params: ArticleFilterParams = Depends(),
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db,
        _viewer_id(user),
        tag=params.tag,
        author=params.author,
        favorited=params.favorited,
        limit=params.limit,
        offset=params.offset,
    )

# Declared before "/{slug}" so "feed" is not taken for a slug.
@router.get("/feed", response_model=MultipleArticlesResponse)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.feed_articles(db, user.id, pagination.limit, pagination.offset)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: NewArticleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, user.id, data.article)

@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, slug, _viewer_id(user))

@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: UpdateArticleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, user.id, slug, data.article)

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, user.id, slug)

# --- Favorites ---

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.favorite_article(db, user.id, slug)

@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.unfavorite_article(db, user.id, slug)

# --- Comments ---

@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: NewCommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, user.id, slug, data.comment)

@router.get("/{slug}/comments", response_model=MultipleCommentsResponse)
async def list_comments(
    slug: str,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.list_comments(db, slug, _viewer_id(user))

@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, user.id, slug, comment_id)
