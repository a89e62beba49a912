from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    StringConstraints,
    TypeAdapter,
)

MAX_TAGS = 40
MAX_TAG_LENGTH = 255

_URL_ADAPTER = TypeAdapter(HttpUrl)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")
_PASSWORD_RE = re.compile(r"^[A-Za-z0-9]+$")


def _check_url(value: str) -> str:
    # Validate the shape but keep the client's spelling (no trailing-slash rewrite).
    _URL_ADAPTER.validate_python(value)
    return value


def _check_unique_tags(tags: list[str]) -> list[str]:
    if len(set(tags)) != len(tags):
        raise ValueError("tags must be unique")
    return tags


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("not a valid email address")
    return value


def check_password(value: str) -> str:
    """Passwords are at least 8 characters, letters and digits only."""
    if len(value) < 8:
        raise ValueError("password must be at least 8 characters")
    if not _PASSWORD_RE.match(value):
        raise ValueError("password must be alphanumeric")
    return value


Url = Annotated[str, StringConstraints(max_length=2048), AfterValidator(_check_url)]
Tag = Annotated[str, StringConstraints(min_length=1, max_length=MAX_TAG_LENGTH)]
Tags = Annotated[list[Tag], Field(max_length=MAX_TAGS), AfterValidator(_check_unique_tags)]
Title = Annotated[str, StringConstraints(min_length=1, max_length=89)]
Counter = Annotated[int, Field(ge=0)]
Version = Annotated[int, Field(gt=0)]
Email = Annotated[str, StringConstraints(max_length=255), AfterValidator(_check_email)]
Username = Annotated[str, StringConstraints(min_length=1, max_length=90, pattern=r"^[\w.-]+$")]
Password = Annotated[str, AfterValidator(check_password)]


class _Request(BaseModel):
    """Request bodies speak camelCase on the wire but accept field names too."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Response(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None


class StatusMessage(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# ASSET SCHEMAS
# ============================================================================


class AssetCreate(_Request):
    name: str = Field(..., min_length=1, max_length=90)
    description: str | None = Field(None, max_length=5000)
    link: Url | None = None
    tags: Tags | None = None


class AssetUpdate(_Request):
    name: str | None = Field(None, min_length=1, max_length=90)
    description: str | None = Field(None, max_length=5000)
    link: Url | None = None
    tags: Tags | None = None
    version: Version


class Asset(_Response):
    id: int
    name: str
    description: str | None = None
    # A presigned link wins over the stored one once a blob has been uploaded.
    link: str | None = Field(None, validation_alias=AliasChoices("presigned_link", "link"))
    tags: list[str] | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    version: int


# ============================================================================
# DEMO SCHEMAS
# ============================================================================


class DemoCreate(_Request):
    title: Title
    description: str | None = Field(None, max_length=5000)
    link: Url
    tags: Tags | None = None
    user_id: UUID = Field(..., alias="userID")
    upvotes: Counter = 0
    downvotes: Counter = 0


class DemoUpdate(_Request):
    title: Title | None = None
    description: str | None = Field(None, max_length=5000)
    link: Url | None = None
    tags: Tags | None = None
    upvotes: Counter | None = None
    downvotes: Counter | None = None
    version: Version | None = None


class Demo(_Response):
    id: int
    title: str
    description: str | None = None
    link: str
    # Presigned links to the uploaded build and thumbnail
    file: str | None = Field(None, validation_alias=AliasChoices("file_link", "file"))
    thumbnail: str | None = Field(None, validation_alias=AliasChoices("thumbnail_link", "thumbnail"))
    tags: list[str] | None = None
    user_id: UUID = Field(alias="userID")
    thread_id: int = Field(alias="threadID")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    upvotes: int
    downvotes: int
    views: int
    rating: int
    version: int


# ============================================================================
# FORUM SCHEMAS
# ============================================================================


class TopicCreate(_Request):
    name: str = Field(..., min_length=1, max_length=89)


class TopicUpdate(_Request):
    name: str | None = Field(None, min_length=1, max_length=89)
    version: Version


class Topic(_Response):
    id: int
    name: str
    version: int


class ThreadCreate(_Request):
    title: Title
    user_id: UUID = Field(..., alias="userID")
    topic_id: int = Field(..., alias="topicID", gt=0)
    tags: Tags | None = None
    upvotes: Counter = 0
    downvotes: Counter = 0


class ThreadUpdate(_Request):
    title: Title | None = None
    topic_id: int | None = Field(None, alias="topicID", gt=0)
    tags: Tags | None = None
    upvotes: Counter | None = None
    downvotes: Counter | None = None
    updated_at: datetime | None = Field(None, alias="updatedAt")
    version: Version | None = None


class Thread(_Response):
    id: int
    title: str
    user_id: UUID = Field(alias="userID")
    topic_id: int = Field(alias="topicID")
    tags: list[str] | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    upvotes: int
    downvotes: int
    views: int
    rating: int
    version: int


class MessageCreate(_Request):
    thread_id: int = Field(..., alias="threadID", gt=0)
    user_id: UUID = Field(..., alias="userID")
    title: Title
    body: str = Field("", max_length=10000)
    tags: Tags | None = None


class MessageUpdate(_Request):
    title: Title | None = None
    body: str | None = Field(None, max_length=10000)
    tags: Tags | None = None
    upvotes: Counter | None = None
    downvotes: Counter | None = None
    version: Version | None = None


class Message(_Response):
    id: int
    thread_id: int = Field(alias="threadID")
    user_id: UUID = Field(alias="userID")
    title: str
    body: str
    tags: list[str] | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    upvotes: int
    downvotes: int
    views: int
    rating: int
    version: int


# ============================================================================
# USER, ROLE & SESSION SCHEMAS
# ============================================================================


class RegisterRequest(_Request):
    username: Username
    email: Email
    password: Password
    display_name: str | None = Field(None, alias="displayName", max_length=90)


class UserCreate(RegisterRequest):
    """Administrative user creation; may pick the role and verification flag."""

    role_id: UUID | None = Field(None, alias="roleID")
    verified: bool = False


class UserUpdate(_Request):
    username: Username | None = None
    display_name: str | None = Field(None, alias="displayName", max_length=90)
    email: Email | None = None
    role_id: UUID | None = Field(None, alias="roleID")
    karma: Counter | None = None
    version: Version | None = None


class User(_Response):
    id: UUID
    username: str
    display_name: str | None = Field(None, alias="displayName")
    email: str
    verified: bool
    role_id: UUID | None = Field(None, alias="roleID")
    created_at: datetime = Field(alias="createdAt")
    karma: int
    profile_pic: str | None = Field(
        None, validation_alias=AliasChoices("profile_pic_link", "profilePic"), serialization_alias="profilePic"
    )
    version: int


class Session(_Response):
    id: UUID
    user_id: UUID = Field(alias="userID")
    created_at: datetime = Field(alias="createdAt")


class LoginRequest(_Request):
    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, max_length=90)
    password: str = Field(..., min_length=1)


class RoleCreate(_Request):
    name: str = Field(..., min_length=1, max_length=255, pattern=r"^[\w.-]+$")


class RoleUpdate(_Request):
    name: str | None = Field(None, min_length=1, max_length=255, pattern=r"^[\w.-]+$")
    version: Version


class Role(_Response):
    id: UUID
    name: str
    version: int
