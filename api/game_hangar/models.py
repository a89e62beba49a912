from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Computed,
    DateTime,
    ForeignKey,
    Identity,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, TSVECTOR, UUID
from sqlalchemy.orm import relationship

from .db import Base

# Defined once by the first migration; ICU, case-insensitive, nondeterministic.
CASE_INSENSITIVE = "case_insensitive"

TAGS_TYPE = ARRAY(String(255, collation=CASE_INSENSITIVE))


def _search_vector(title_column: str, body_column: str | None) -> Computed:
    """Generated tsvector: title weighted A, body weighted B, English + Russian."""
    parts = [
        f"setweight(to_tsvector('english'::regconfig, coalesce({title_column}, '')), 'A')",
        f"setweight(to_tsvector('russian'::regconfig, coalesce({title_column}, '')), 'A')",
    ]
    if body_column:
        parts += [
            f"setweight(to_tsvector('english'::regconfig, coalesce({body_column}, '')), 'B')",
            f"setweight(to_tsvector('russian'::regconfig, coalesce({body_column}, '')), 'B')",
        ]
    return Computed(" || ".join(parts), persisted=True)


# ============================================================================
# ASSETS
# ============================================================================


class Asset(Base):
    """Downloadable game asset; the blob lives in the object store."""

    __tablename__ = "assets"

    id = Column(Integer, Identity(always=True), primary_key=True)
    name = Column(String(90), nullable=False)
    description = Column(Text, nullable=True)
    link = Column(String(2048), nullable=True)
    object_key = Column(String(255), nullable=True)  # set once a blob is uploaded
    tags = Column(TAGS_TYPE, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    version = Column(Integer, nullable=False, server_default=text("1"))
    asset_ts = Column(TSVECTOR, _search_vector("name", "description"))

    __table_args__ = {"schema": "asset"}

    search_column = "asset_ts"
    default_order = "id"


# ============================================================================
# DEMOS
# ============================================================================


class Demo(Base):
    """User-published playable demo, bound 1:1 to a forum thread."""

    __tablename__ = "demos"

    id = Column(Integer, Identity(always=True), primary_key=True)
    title = Column(String(90), nullable=False)
    description = Column(Text, nullable=True)
    link = Column(String(2048), nullable=False)
    object_key = Column(String(255), nullable=True)  # playable build, once uploaded
    thumbnail_key = Column(String(255), nullable=True)
    tags = Column(TAGS_TYPE, nullable=True)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    thread_id = Column(Integer, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    upvotes = Column(Integer, nullable=False, server_default=text("0"))
    downvotes = Column(Integer, nullable=False, server_default=text("0"))
    views = Column(Integer, nullable=False, server_default=text("0"))
    version = Column(Integer, nullable=False, server_default=text("1"))
    rating = Column(Integer, Computed("upvotes - downvotes", persisted=True))
    demo_ts = Column(TSVECTOR, _search_vector("title", "description"))

    __table_args__ = (
        CheckConstraint("upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="demos_counters_non_negative"),
        {"schema": "demo"},
    )

    search_column = "demo_ts"
    default_order = "updated_at"


# ============================================================================
# FORUM
# ============================================================================


class Topic(Base):
    """Forum partition."""

    __tablename__ = "topics"

    id = Column(Integer, Identity(always=True), primary_key=True)
    name = Column(String(90), nullable=False)
    version = Column(Integer, nullable=False, server_default=text("1"))

    threads = relationship("Thread", back_populates="topic", passive_deletes=True)

    __table_args__ = {"schema": "forum"}

    search_column = None
    default_order = "id"


class Thread(Base):
    """Discussion container inside a topic."""

    __tablename__ = "threads"

    id = Column(Integer, Identity(always=True), primary_key=True)
    title = Column(String(90), nullable=False)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    topic_id = Column(
        Integer, ForeignKey("forum.topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tags = Column(TAGS_TYPE, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    upvotes = Column(Integer, nullable=False, server_default=text("0"))
    downvotes = Column(Integer, nullable=False, server_default=text("0"))
    views = Column(Integer, nullable=False, server_default=text("0"))
    version = Column(Integer, nullable=False, server_default=text("1"))
    rating = Column(Integer, Computed("upvotes - downvotes", persisted=True))
    thread_ts = Column(TSVECTOR, _search_vector("title", None))

    topic = relationship("Topic", back_populates="threads")
    messages = relationship("Message", back_populates="thread", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="threads_counters_non_negative"),
        {"schema": "forum"},
    )

    search_column = "thread_ts"
    default_order = "updated_at"


class Message(Base):
    """Forum post inside a thread."""

    __tablename__ = "messages"

    id = Column(Integer, Identity(always=True), primary_key=True)
    thread_id = Column(
        Integer, ForeignKey("forum.threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(90), nullable=False)
    body = Column(Text, nullable=False, server_default=text("''"))
    tags = Column(TAGS_TYPE, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    upvotes = Column(Integer, nullable=False, server_default=text("0"))
    downvotes = Column(Integer, nullable=False, server_default=text("0"))
    views = Column(Integer, nullable=False, server_default=text("0"))
    version = Column(Integer, nullable=False, server_default=text("1"))
    rating = Column(Integer, Computed("upvotes - downvotes", persisted=True))
    message_ts = Column(TSVECTOR, _search_vector("title", "body"))

    thread = relationship("Thread", back_populates="messages")

    __table_args__ = (
        CheckConstraint("upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="messages_counters_non_negative"),
        {"schema": "forum"},
    )

    search_column = "message_ts"
    default_order = "created_at"


class DemoTopic(Base):
    """The topic demo threads are posted to; one row, written by the seed."""

    __tablename__ = "demo_topic"

    topic_id = Column(
        Integer, ForeignKey("forum.topics.id", ondelete="RESTRICT"), primary_key=True
    )

    __table_args__ = {"schema": "forum"}


# ============================================================================
# USERS, ROLES, SESSIONS
# ============================================================================


class Role(Base):
    """Named bundle of permissions; ``name`` is the policy-engine subject."""

    __tablename__ = "roles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    version = Column(Integer, nullable=False, server_default=text("1"))

    users = relationship("User", back_populates="role", passive_deletes=True)

    __table_args__ = {"schema": "user"}

    search_column = None
    default_order = "name"


class User(Base):
    """User account with password login."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(90, collation=CASE_INSENSITIVE), nullable=False, unique=True)
    display_name = Column(String(90), nullable=True)
    email = Column(String(255, collation=CASE_INSENSITIVE), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    verified = Column(Boolean, nullable=False, server_default=text("false"))
    role_id = Column(
        UUID(as_uuid=True), ForeignKey("user.roles.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    karma = Column(Integer, nullable=False, server_default=text("0"))
    profile_pic_key = Column(String(255), nullable=True)
    version = Column(Integer, nullable=False, server_default=text("1"))
    user_ts = Column(TSVECTOR, _search_vector("username", "display_name"))

    role = relationship("Role", back_populates="users", lazy="joined")
    sessions = relationship("UserSession", back_populates="user", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("karma >= 0", name="users_karma_non_negative"),
        {"schema": "user"},
    )

    search_column = "user_ts"
    default_order = "karma"

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role is not None else None


class UserSession(Base):
    """Authenticated login, identified by the ``sessionID`` cookie."""

    __tablename__ = "sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("user.users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="sessions")

    __table_args__ = {"schema": "user"}


# ============================================================================
# POLICY
# ============================================================================


class PolicyRule(Base):
    """
    Flat policy tuple.

    ``ptype == "p"``: ``(v0=subject, v1=object, v2=action)`` permission.
    ``ptype == "g"``: ``(v0=role, v1=parentRole)`` grouping, ``v2`` is empty.
    """

    __tablename__ = "policy_rules"

    id = Column(Integer, Identity(always=True), primary_key=True)
    ptype = Column(String(1), nullable=False)
    v0 = Column(String(255), nullable=False)
    v1 = Column(String(255), nullable=False)
    v2 = Column(String(255), nullable=False, server_default=text("''"))

    __table_args__ = (
        UniqueConstraint("ptype", "v0", "v1", "v2", name="uq_policy_rules_tuple"),
    )
