import logging

import jwt
from fastapi import Depends, Query
from fastapi.security import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import AuthenticationError
from conduit.models import User
from conduit.security import decode_access_token

logger = logging.getLogger(__name__)

# RealWorld clients send "Authorization: Token <jwt>"; "Bearer" is accepted too.
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

_TOKEN_SCHEMES = ("token", "bearer")


class PaginationParams:
    """
    Reusable FastAPI dependency for ``limit`` / ``offset`` query parameters.

    Usage in a router::

        @router.get("/articles/feed")
        async def feed(pagination: PaginationParams = Depends()):
            ...

    ``limit`` is clamped to ``settings.MAX_PAGE_SIZE`` regardless of the
    value supplied by the caller.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Maximum number of articles to return (max 100).",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


class ArticleFilterParams(PaginationParams):
    """Pagination plus the ``tag`` / ``author`` / ``favorited`` list filters."""

    def __init__(
        self,
        tag: str | None = Query(None, description="Only articles carrying this tag."),
        author: str | None = Query(None, description="Only articles by this username."),
        favorited: str | None = Query(None, description="Only articles favorited by this username."),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
        offset: int = Query(0, ge=0),
    ) -> None:
        super().__init__(limit=limit, offset=offset)
        self.tag = tag
        self.author = author
        self.favorited = favorited


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def _extract_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() not in _TOKEN_SCHEMES:
        return None
    return parts[1]


async def _user_from_token(db: AsyncSession, token: str) -> User:
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.debug("JWT validation failed: %s", exc)
        raise AuthenticationError("Invalid token")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid token payload")

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    authorization: str | None = Depends(authorization_header),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the Authorization header; 401 when absent or invalid."""
    token = _extract_token(authorization)
    if token is None:
        raise AuthenticationError("Missing or malformed authorization header")
    return await _user_from_token(db, token)


async def get_current_user_optional(
    authorization: str | None = Depends(authorization_header),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Like ``get_current_user`` but returns None for anonymous callers.

    An invalid token is treated as no token at all.
    """
    token = _extract_token(authorization)
    if token is None:
        return None
    try:
        return await _user_from_token(db, token)
    except AuthenticationError:
        return None
