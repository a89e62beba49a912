from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Generator

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from . import settings
from .db import get_session
from .object_store import ObjectStore, get_object_store
from .policy import PolicyEngine
from .repositories import (
    AssetRepository,
    DemoRepository,
    ForumRepository,
    RoleRepository,
    UserRepository,
)
from .services.thread_sync import ThreadSyncer
from .services.user_authorizer import UserAuthorizer
from .services.user_identifier import UserIdentifier


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_policy(db: Session = Depends(get_db)) -> PolicyEngine:
    return PolicyEngine(db)


def get_asset_repository(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    policy: PolicyEngine = Depends(get_policy),
) -> AssetRepository:
    return AssetRepository(db, store, policy)


def get_demo_repository(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    policy: PolicyEngine = Depends(get_policy),
) -> DemoRepository:
    return DemoRepository(db, store, policy)


def get_forum_repository(
    db: Session = Depends(get_db), policy: PolicyEngine = Depends(get_policy)
) -> ForumRepository:
    return ForumRepository(db, policy)


def get_user_repository(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    policy: PolicyEngine = Depends(get_policy),
) -> UserRepository:
    return UserRepository(db, store, policy)


def get_role_repository(
    db: Session = Depends(get_db), policy: PolicyEngine = Depends(get_policy)
) -> RoleRepository:
    return RoleRepository(db, policy)


def get_thread_syncer(
    forum: ForumRepository = Depends(get_forum_repository),
    demos: DemoRepository = Depends(get_demo_repository),
) -> ThreadSyncer:
    """Syncer posting to the recorded demo topic; the seed normally records it at startup."""
    return ThreadSyncer(forum, demos, forum.ensure_demo_topic(settings.DEMO_TOPIC_NAME))


def get_user_authorizer(
    users: UserRepository = Depends(get_user_repository),
    policy: PolicyEngine = Depends(get_policy),
) -> UserAuthorizer:
    return UserAuthorizer(users, policy)


def get_user_identifier(users: UserRepository = Depends(get_user_repository)) -> UserIdentifier:
    return UserIdentifier(users)


@dataclass(frozen=True)
class SearchParams:
    keywords: list[str]
    limit: int
    order: str | None


def get_search_params(
    q: str | None = Query(None, description="Keywords, separated by spaces or commas"),
    l: int = Query(0, ge=0, description="Maximum number of rows, 0 for all"),
    o: str | None = Query(None, description="highest-rated, newest-updated or most-views"),
) -> SearchParams:
    keywords = [k for k in re.split(r"[\s,]+", q or "") if k]
    return SearchParams(keywords=keywords, limit=l, order=o)
