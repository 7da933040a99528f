"""
User service: registration, login and the current user's account.

Username and email uniqueness is checked up front so the caller gets a
precise message; the database unique constraints remain the final word
and a lost race surfaces as the same ``ConflictError``.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import AuthenticationError, ConflictError
from conduit.models import User
from conduit.schemas import UserLogin, UserOut, UserRegister, UserResponse, UserUpdate
from conduit.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _user_response(user: User) -> UserResponse:
    return UserResponse(
        user=UserOut(
            email=user.email,
            token=create_access_token(user),
            username=user.username,
            bio=user.bio or "",
            image=user.image or "",
        )
    )


async def _ensure_available(
    db: AsyncSession,
    username: str | None = None,
    email: str | None = None,
    exclude_id: int | None = None,
) -> None:
    if username is not None:
        q = select(User.id).where(User.username == username)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if (await db.execute(q)).first() is not None:
            raise ConflictError("Username is already taken")
    if email is not None:
        q = select(User.id).where(User.email == email)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if (await db.execute(q)).first() is not None:
            raise ConflictError("Email is already registered")


async def _flush_or_conflict(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError("A user with this username or email already exists")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register_user(db: AsyncSession, data: UserRegister) -> UserResponse:
    email = data.email.lower()
    await _ensure_available(db, username=data.username, email=email)

    user = User(
        username=data.username,
        email=email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    await _flush_or_conflict(db)
    logger.info("User registered: %s", user.username)
    return _user_response(user)


async def login_user(db: AsyncSession, data: UserLogin) -> UserResponse:
    """Check the credentials in *data*; wrong email and wrong password look the same."""
    user = (
        await db.execute(select(User).where(User.email == data.email.lower()))
    ).scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return _user_response(user)


def current_user(user: User) -> UserResponse:
    return _user_response(user)


async def update_user(db: AsyncSession, user: User, data: UserUpdate) -> UserResponse:
    """
    Apply the fields set in *data* to *user*.

    ``bio`` and ``image`` may be cleared with null; ``username``,
    ``email`` and ``password`` ignore null.
    """
    changes = data.model_dump(exclude_unset=True)
    if changes.get("email") is not None:
        changes["email"] = changes["email"].lower()

    await _ensure_available(
        db,
        username=changes.get("username"),
        email=changes.get("email"),
        exclude_id=user.id,
    )

    password = changes.pop("password", None)
    if password is not None:
        user.password_hash = hash_password(password)

    for field, value in changes.items():
        if value is None and field in ("username", "email"):
            continue
        setattr(user, field, value)

    await _flush_or_conflict(db)
    return _user_response(user)
