"""
Comment service: comments attached to an article.

Comments cannot be edited.  Only the comment author can delete one, and
it is addressed through its article's slug so a comment id from another
article is reported as not found.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.exceptions import ForbiddenError, NotFoundError
from conduit.models import Comment
from conduit.schemas import CommentCreate, CommentOut, CommentResponse, MultipleCommentsResponse
from conduit.services.article_service import get_article_row
from conduit.services.profile_service import following_ids, profile_out

logger = logging.getLogger(__name__)


def _comment_out(comment: Comment, following: bool) -> CommentOut:
    return CommentOut(
        id=comment.id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        body=comment.body,
        author=profile_out(comment.author, following),
    )


async def add_comment(
    db: AsyncSession, user_id: int, slug: str, data: CommentCreate
) -> CommentResponse:
    """Append a comment by *user_id* to the article at *slug*."""
    article = await get_article_row(db, slug)

    comment = Comment(body=data.body, article_id=article.id, author_id=user_id)
    db.add(comment)
    await db.flush()

    q = (
        select(Comment)
        .where(Comment.id == comment.id)
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).scalar_one()
    followed = await following_ids(db, user_id, [comment.author_id])
    return CommentResponse(comment=_comment_out(comment, comment.author_id in followed))


async def list_comments(
    db: AsyncSession, slug: str, viewer_id: int | None = None
) -> MultipleCommentsResponse:
    """Return the comments on *slug*, oldest first."""
    article = await get_article_row(db, slug)

    q = (
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    comments = (await db.execute(q)).scalars().all()
    followed = await following_ids(db, viewer_id, {c.author_id for c in comments})
    return MultipleCommentsResponse(
        comments=[_comment_out(c, c.author_id in followed) for c in comments]
    )


async def delete_comment(db: AsyncSession, user_id: int, slug: str, comment_id: int) -> None:
    article = await get_article_row(db, slug)

    comment = (
        await db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.article_id == article.id)
        )
    ).scalar_one_or_none()
    if comment is None:
        raise NotFoundError("Comment not found")
    if comment.author_id != user_id:
        logger.warning("Rejected delete of comment %d by user %d", comment_id, user_id)
        raise ForbiddenError("You can only delete your own comments")

    await db.delete(comment)
    await db.flush()
