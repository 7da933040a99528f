"""
Profile service: public profiles and the follow relation.

The helpers at the top (``get_user_id_by_username``, ``following_ids``,
``profile_out``) are shared with the article and comment services, which
embed author profiles in their responses.
"""
import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import NotFoundError
from conduit.models import Follow, User
from conduit.schemas import ProfileOut, ProfileResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def profile_out(user: User, following: bool = False) -> ProfileOut:
    return ProfileOut(
        username=user.username,
        bio=user.bio or "",
        image=user.image or "",
        following=following,
    )


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    user = (
        await db.execute(select(User).where(User.username == username))
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_id_by_username(db: AsyncSession, username: str) -> int:
    user_id = (
        await db.execute(select(User.id).where(User.username == username))
    ).scalar_one_or_none()
    if user_id is None:
        raise NotFoundError("User not found")
    return user_id


async def following_ids(
    db: AsyncSession, viewer_id: int | None, candidate_ids: Iterable[int]
) -> set[int]:
    """
    Return the subset of *candidate_ids* that *viewer_id* follows.

    One query regardless of how many candidates are passed; no query at
    all for anonymous viewers or an empty candidate list.
    """
    candidates = set(candidate_ids)
    if viewer_id is None or not candidates:
        return set()
    q = select(Follow.followed_id).where(
        Follow.follower_id == viewer_id,
        Follow.followed_id.in_(candidates),
    )
    return set((await db.execute(q)).scalars().all())


async def is_following(db: AsyncSession, viewer_id: int | None, user_id: int) -> bool:
    return user_id in await following_ids(db, viewer_id, [user_id])


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_profile(
    db: AsyncSession, username: str, viewer_id: int | None = None
) -> ProfileResponse:
    """Return the profile for *username* as seen by *viewer_id*."""
    user = await get_user_by_username(db, username)
    following = await is_following(db, viewer_id, user.id)
    return ProfileResponse(profile=profile_out(user, following))


async def follow_user(db: AsyncSession, viewer_id: int, username: str) -> ProfileResponse:
    """
    Make *viewer_id* follow *username*.

    Following twice is a no-op; the existing row is left untouched.
    """
    user = await get_user_by_username(db, username)
    if not await is_following(db, viewer_id, user.id):
        db.add(Follow(follower_id=viewer_id, followed_id=user.id))
        await db.flush()
        logger.info("User %d followed %s", viewer_id, username)
    return ProfileResponse(profile=profile_out(user, following=True))


async def unfollow_user(db: AsyncSession, viewer_id: int, username: str) -> ProfileResponse:
    """Remove the follow from *viewer_id* to *username*, if there is one."""
    user = await get_user_by_username(db, username)
    await db.execute(
        delete(Follow).where(
            Follow.follower_id == viewer_id,
            Follow.followed_id == user.id,
        )
    )
    return ProfileResponse(profile=profile_out(user, following=False))
