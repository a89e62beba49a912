from __future__ import annotations

import logging

from sqlalchemy import select

from . import settings
from .db import acquire
from .models import Role
from .policy import PolicyEngine
from .repositories.forum import ForumRepository

logger = logging.getLogger(__name__)

BUILTIN_ROLES = ("admin", "freetier", "paidtier")

# (subject, object, action)
BUILTIN_PERMISSIONS = (
    ("freetier", "assets", "POST"),
    ("freetier", "demos", "POST"),
    ("freetier", "topics", "POST"),
    ("freetier", "threads", "POST"),
    ("freetier", "messages", "POST"),
    ("paidtier", "demos", "POSTExtended"),
)

# (role, parentRole)
BUILTIN_GROUPINGS = (("paidtier", "freetier"),)

DEFAULT_ROLE = "freetier"


def ensure_seed_data() -> None:
    """
    Create the built-in roles, their policy rules and the demo topic.

    Safe to run on every start; existing rows are left alone.
    """
    with acquire() as db:
        existing = set(db.execute(select(Role.name)).scalars().all())
        for name in BUILTIN_ROLES:
            if name not in existing:
                db.add(Role(name=name))
                logger.info(f"ensure_seed_data: created role {name}")

        policy = PolicyEngine(db)
        for subject, obj, action in BUILTIN_PERMISSIONS:
            policy.add_permission(subject, obj, action)
        for role, parent in BUILTIN_GROUPINGS:
            policy.add_grouping(role, parent)

        db.commit()

        demo_topic_id = ForumRepository(db, policy).ensure_demo_topic(settings.DEMO_TOPIC_NAME)
        logger.info(f"ensure_seed_data: demo topic is {demo_topic_id}")
    logger.info("ensure_seed_data: done.")


if __name__ == "__main__":
    logging.basicConfig(level="INFO")
    ensure_seed_data()
