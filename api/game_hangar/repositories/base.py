"""Shared CRUD contract for the SQL repositories.

Every write runs in its own short transaction, committed before the method
returns together with any policy edits it made. Cross-repository atomicity
is the caller's business (see ``services.thread_sync``).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Sequence

from sqlalchemy import ARRAY, String, cast, func, literal, select, update
from sqlalchemy.dialects.postgresql import REGCONFIG
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import NoRowsError
from ..errors import ConflictError, GameHangarError, NotFoundError, UpstreamError, ValidationFailed
from ..models import CASE_INSENSITIVE
from ..policy import PolicyEngine

logger = logging.getLogger(__name__)

# Order mode -> column, always descending
ORDER_MODES = {
    "highest-rated": "rating",
    "newest-updated": "updated_at",
    "most-views": "views",
}

_DESCENDING_DEFAULTS = {"updated_at", "karma"}

SEARCH_LANGUAGES = ("english", "russian")


def search_query(keywords: Sequence[str]) -> str:
    """Keywords as a websearch query matching any of them."""
    return " or ".join(k.strip() for k in keywords if k and k.strip())


class SqlRepository:
    """Base for repositories; holds the request's session and policy engine."""

    not_found_error = NotFoundError
    conflict_error = ConflictError

    def __init__(self, db: Session, policy: PolicyEngine | None = None):
        self.db = db
        self.policy = policy if policy is not None else PolicyEngine(db)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit on success; roll back and translate database errors."""
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise self.conflict_error(f"Constraint violated: {e.orig}") from e
        except GameHangarError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error: {e}")
            raise UpstreamError("Database operation failed") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get(self, model, entity_id: Any):
        try:
            return self.db.execute(select(model).where(model.id == entity_id)).scalar_one()
        except NoRowsError as e:
            raise self.not_found_error(f"{model.__name__} {entity_id} not found") from e

    def _get_viewed(self, model, entity_id: Any):
        """Fetch a row and increment its view counter in the same statement."""
        stmt = (
            update(model)
            .where(model.id == entity_id)
            .values(views=model.views + 1)
            .returning(model)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        with self._transaction():
            row = self.db.execute(stmt).scalars().one_or_none()
            if row is None:
                raise self.not_found_error(f"{model.__name__} {entity_id} not found")
        return row

    def _exists(self, model, entity_id: Any) -> bool:
        return self.db.execute(select(model.id).where(model.id == entity_id)).first() is not None

    def _search_filter(self, model, keywords: Sequence[str]):
        clauses = []
        query = search_query(keywords)
        search_column = getattr(model, "search_column", None)
        if search_column and query:
            tsquery = None
            for language in SEARCH_LANGUAGES:
                part = func.websearch_to_tsquery(cast(literal(language), REGCONFIG), query)
                tsquery = part if tsquery is None else tsquery.op("||")(part)
            clauses.append(getattr(model, search_column).op("@@")(tsquery))
        if hasattr(model, "tags"):
            wanted = cast(literal(list(keywords), ARRAY(String)), ARRAY(String(255)))
            clauses.append(model.tags.op("&&")(wanted.collate(CASE_INSENSITIVE)))
        if not clauses:
            return None
        combined = clauses[0]
        for clause in clauses[1:]:
            combined = combined | clause
        return combined

    def _ordering(self, model, order: str | None) -> list:
        column_name = ORDER_MODES.get(order or "")
        if column_name and hasattr(model, column_name):
            return [getattr(model, column_name).desc(), model.id.desc()]

        default = model.default_order
        column = getattr(model, default)
        if default in _DESCENDING_DEFAULTS:
            return [column.desc(), model.id.desc()]
        return [column.asc(), model.id.asc()]

    def _find(
        self,
        model,
        keywords: Sequence[str] | None = None,
        limit: int = 0,
        order: str | None = None,
        where: Sequence = (),
    ) -> list:
        """
        Rows matching any of ``keywords`` by full text or by tag.

        No keywords returns every row. ``limit`` 0 means unlimited.
        """
        stmt = select(model)
        keywords = [k for k in (keywords or []) if k and k.strip()]
        if keywords:
            search = self._search_filter(model, keywords)
            if search is not None:
                stmt = stmt.where(search)
        for criterion in where:
            stmt = stmt.where(criterion)
        stmt = stmt.order_by(*self._ordering(model, order))
        if limit and limit > 0:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).unique().scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, entity):
        """Flush ``entity`` and reload server-generated columns. Call inside a transaction."""
        self.db.add(entity)
        self.db.flush()
        self.db.refresh(entity)
        return entity

    def _apply_update(self, model, entity_id: Any, fields: dict[str, Any], version: int | None):
        """
        Versioned partial update. Call inside a transaction.

        Each supplied field is written as ``COALESCE(new, old)``; the version
        trigger bumps ``version``.

        Raises:
            ValidationFailed: If ``fields`` is empty.
            NotFoundError: If the row does not exist.
            ConflictError: If ``version`` is stale.
        """
        fields = {k: v for k, v in fields.items() if v is not None}
        if not fields:
            raise ValidationFailed("Update contains no fields")

        table = model.__table__
        if "updated_at" in table.c and "updated_at" not in fields:
            fields["updated_at"] = datetime.now(timezone.utc)
        values = {
            name: func.coalesce(literal(value, type_=table.c[name].type), table.c[name])
            for name, value in fields.items()
        }
        stmt = update(model).where(model.id == entity_id)
        if version is not None:
            stmt = stmt.where(model.version == version)
        stmt = (
            stmt.values(values)
            .returning(model)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        row = self.db.execute(stmt).scalars().one_or_none()
        if row is None:
            if not self._exists(model, entity_id):
                raise self.not_found_error(f"{model.__name__} {entity_id} not found")
            raise self.conflict_error(
                f"{model.__name__} {entity_id} was modified; version {version} is stale"
            )
        return row

    def _update(self, model, entity_id: Any, fields: dict[str, Any], version: int | None = None):
        with self._transaction():
            row = self._apply_update(model, entity_id, fields, version)
        return row

    def _apply_delete(self, model, entity_id: Any) -> None:
        result = self.db.execute(
            model.__table__.delete().where(model.__table__.c.id == entity_id)
        )
        if result.rowcount == 0:
            raise self.not_found_error(f"{model.__name__} {entity_id} not found")

    def _delete(self, model, entity_id: Any) -> None:
        with self._transaction():
            self._apply_delete(model, entity_id)

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def _grant_owner(self, owner_id: Any, obj: str) -> None:
        if owner_id is None:
            return
        self.policy.add_permissions(str(owner_id), obj, ("PATCH", "DELETE"))
