"""Policy engine over the ``policy_rules`` table.

Two kinds of tuples are stored:

* ``p`` permissions ``(subject, object, action)``; the subject is a user id
  or a role name, the object is a resource path such as ``"demos"`` or
  ``"threads/12"``, the action is an HTTP method or ``POSTExtended``.
* ``g`` groupings ``(role, parentRole)``; every permission of the parent
  applies to the role.

Subjects that reach ``admin`` through groupings are superusers.

Edits run on the caller's session so they commit with the row change that
triggered them. Every edit is idempotent.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from .models import PolicyRule

logger = logging.getLogger(__name__)

SUPERUSER = "admin"

PERMISSION = "p"
GROUPING = "g"


def role_closure(subject: str, groupings: Mapping[str, Iterable[str]]) -> set[str]:
    """
    Every subject whose permissions apply to ``subject``.

    ``groupings`` maps a role to its parent roles. Cycles are tolerated.
    """
    seen = {subject}
    frontier = [subject]
    while frontier:
        current = frontier.pop()
        for parent in groupings.get(current, ()):
            if parent not in seen:
                seen.add(parent)
                frontier.append(parent)
    return seen


class PolicyEngine:
    """Answers ``enforce(sub, obj, act)`` and keeps the tuple set."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _groupings(self) -> dict[str, list[str]]:
        rows = self.db.execute(
            select(PolicyRule.v0, PolicyRule.v1).where(PolicyRule.ptype == GROUPING)
        ).all()
        groupings: dict[str, list[str]] = {}
        for role, parent in rows:
            groupings.setdefault(role, []).append(parent)
        return groupings

    def subjects_for(self, subject: str) -> set[str]:
        return role_closure(subject, self._groupings())

    def enforce(self, subject: str, obj: str, action: str) -> bool:
        subjects = self.subjects_for(subject)
        if SUPERUSER in subjects:
            return True
        found = self.db.execute(
            select(PolicyRule.id)
            .where(
                PolicyRule.ptype == PERMISSION,
                PolicyRule.v0.in_(subjects),
                PolicyRule.v1 == obj,
                PolicyRule.v2 == action,
            )
            .limit(1)
        ).first()
        return found is not None

    def enforce_any(self, subjects: Iterable[str | None], obj: str, action: str) -> bool:
        """True when at least one of ``subjects`` is allowed."""
        return any(self.enforce(s, obj, action) for s in subjects if s)

    def has_permission(self, subject: str, obj: str, action: str) -> bool:
        """Exact tuple lookup, without groupings."""
        return self._exists(PERMISSION, subject, obj, action)

    def has_grouping(self, role: str, parent: str) -> bool:
        return self._exists(GROUPING, role, parent, "")

    def permissions_for_object(self, obj: str) -> list[tuple[str, str]]:
        rows = self.db.execute(
            select(PolicyRule.v0, PolicyRule.v2).where(
                PolicyRule.ptype == PERMISSION, PolicyRule.v1 == obj
            )
        ).all()
        return [(row[0], row[1]) for row in rows]

    def _exists(self, ptype: str, v0: str, v1: str, v2: str) -> bool:
        return (
            self.db.execute(
                select(PolicyRule.id).where(
                    PolicyRule.ptype == ptype,
                    PolicyRule.v0 == v0,
                    PolicyRule.v1 == v1,
                    PolicyRule.v2 == v2,
                )
            ).first()
            is not None
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _add(self, ptype: str, v0: str, v1: str, v2: str) -> None:
        stmt = (
            insert(PolicyRule)
            .values(ptype=ptype, v0=v0, v1=v1, v2=v2)
            .on_conflict_do_nothing(constraint="uq_policy_rules_tuple")
        )
        self.db.execute(stmt)

    def add_permission(self, subject: str, obj: str, action: str) -> None:
        self._add(PERMISSION, str(subject), obj, action)
        logger.debug(f"Policy added: ({subject}, {obj}, {action})")

    def add_permissions(self, subject: str, obj: str, actions: Iterable[str]) -> None:
        for action in actions:
            self.add_permission(subject, obj, action)

    def add_grouping(self, role: str, parent: str) -> None:
        self._add(GROUPING, role, parent, "")
        logger.debug(f"Policy grouping added: {role} -> {parent}")

    def remove_permission(self, subject: str, obj: str, action: str) -> None:
        self.db.execute(
            delete(PolicyRule).where(
                PolicyRule.ptype == PERMISSION,
                PolicyRule.v0 == str(subject),
                PolicyRule.v1 == obj,
                PolicyRule.v2 == action,
            )
        )
        logger.debug(f"Policy removed: ({subject}, {obj}, {action})")

    def remove_permissions_for_object(self, obj: str) -> int:
        result = self.db.execute(
            delete(PolicyRule).where(PolicyRule.ptype == PERMISSION, PolicyRule.v1 == obj)
        )
        logger.debug(f"Policy removed {result.rowcount} tuple(s) for {obj}")
        return result.rowcount

    def remove_for_subject(self, subject: str) -> int:
        """Drop every permission of ``subject`` and every grouping naming it."""
        result = self.db.execute(
            delete(PolicyRule).where(
                or_(
                    PolicyRule.v0 == subject,
                    and_(PolicyRule.ptype == GROUPING, PolicyRule.v1 == subject),
                )
            )
        )
        logger.info(f"Policy removed {result.rowcount} tuple(s) for subject {subject}")
        return result.rowcount

    def rename_subject(self, old: str, new: str) -> None:
        """Rewrite every tuple naming ``old`` as a subject or parent role."""
        if old == new:
            return
        self.db.execute(update(PolicyRule).where(PolicyRule.v0 == old).values(v0=new))
        self.db.execute(
            update(PolicyRule)
            .where(PolicyRule.ptype == GROUPING, PolicyRule.v1 == old)
            .values(v1=new)
        )
        logger.info(f"Policy subject renamed: {old} -> {new}")
