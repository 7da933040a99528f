from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from conduit.models import TAG_MAX_LENGTH


def _format_timestamp(value: datetime) -> str:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


Timestamp = Annotated[datetime, PlainSerializer(_format_timestamp, return_type=str)]


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User ---

class UserRegister(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserUpdate(CamelModel):
    username: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8, max_length=128)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class RegisterRequest(BaseModel):
    user: UserRegister


class LoginRequest(BaseModel):
    user: UserLogin


class UpdateUserRequest(BaseModel):
    user: UserUpdate


class UserOut(CamelModel):
    email: str
    token: str
    username: str
    bio: str
    image: str


class UserResponse(BaseModel):
    user: UserOut


# --- Profile ---

class ProfileOut(CamelModel):
    username: str
    bio: str
    image: str
    following: bool = False


class ProfileResponse(BaseModel):
    profile: ProfileOut


# --- Article ---

def _clean_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    cleaned = [t.strip() for t in tags]
    if any(not t for t in cleaned):
        raise ValueError("tags must not be empty")
    if any(len(t) > TAG_MAX_LENGTH for t in cleaned):
        raise ValueError(f"tags must be at most {TAG_MAX_LENGTH} characters")
    # Collapse duplicates, keep first-seen order.
    return list(dict.fromkeys(cleaned))


class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = ""
    body: str = Field(min_length=1)
    tag_list: list[str] = []

    @field_validator("tag_list")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class ArticleUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    body: str | None = Field(None, min_length=1)
    tag_list: list[str] | None = None

    @field_validator("tag_list")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class NewArticleRequest(BaseModel):
    article: ArticleCreate


class UpdateArticleRequest(BaseModel):
    article: ArticleUpdate


class ArticleOut(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    created_at: Timestamp
    updated_at: Timestamp
    favorited: bool = False
    favorites_count: int = 0
    author: ProfileOut


class ArticleResponse(BaseModel):
    article: ArticleOut


class MultipleArticlesResponse(CamelModel):
    articles: list[ArticleOut] = []
    articles_count: int = 0


# --- Comment ---

class CommentCreate(CamelModel):
    body: str = Field(min_length=1)


class NewCommentRequest(BaseModel):
    comment: CommentCreate


class CommentOut(CamelModel):
    id: int
    created_at: Timestamp
    updated_at: Timestamp
    body: str
    author: ProfileOut


class CommentResponse(BaseModel):
    comment: CommentOut


class MultipleCommentsResponse(BaseModel):
    comments: list[CommentOut] = []


# --- Tag ---

class TagsResponse(BaseModel):
    tags: list[str] = []
