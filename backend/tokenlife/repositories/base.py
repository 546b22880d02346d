"""Generic repository base for SQLAlchemy 2.x.

Repositories stay persistence-only:

* they never open, commit or roll back transactions (the Unit of Work does),
* they never implement token policy (the services do),
* lookups that feed a write take row locks explicitly via
  :meth:`BaseRepository.get_for_update`.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from tokenlife.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Persistence-only repository for a single aggregate.

    Subclasses MUST define ``model``; they MAY override
    ``_filterable_fields`` to whitelist equality filters.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``tokenlife.core.extensions``.

        :param session: Session shared across the Unit of Work scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        return getattr(self.model, "id", None)

    def _filterable_fields(self) -> dict[str, InstrumentedAttribute[Any]]:
        """Whitelist mapping of public filter keys to model attributes."""
        return {}

    def _apply_equality_filters(self, stmt: Select[Any], filters: dict[str, Any]) -> Select[Any]:
        allowed = self._filterable_fields()
        clauses = [allowed[k] == v for k, v in filters.items() if k in allowed]
        return stmt.where(and_(*clauses)) if clauses else stmt

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK."""
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key.

        :raises RuntimeError: If no PK attribute can be detected.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get requires a detectable PK attribute.")
        result = self.session.execute(select(self.model).where(pk_attr == entity_id))
        return cast(E | None, result.scalars().first())

    def get_for_update(self, entity_id: Any) -> E | None:
        """Retrieve an entity by PK with a ``FOR UPDATE`` lock (when supported).

        SQLite silently ignores the lock; callers that need serialisation on
        every backend combine it with a process-local lock.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get_for_update requires a detectable PK.")
        stmt = select(self.model).where(pk_attr == entity_id).with_for_update()
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def find_one(self, **filters: Any) -> E | None:
        """Find a single entity by whitelisted equality filters."""
        stmt = self._apply_equality_filters(select(self.model), filters)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def count(self, **filters: Any) -> int:
        """Count rows matching whitelisted equality filters."""
        stmt = self._apply_equality_filters(
            select(func.count()).select_from(self.model), filters
        )
        return int(self.session.execute(stmt).scalar_one())

    def delete(self, instance: E) -> None:
        """Hard-delete an entity and flush."""
        self.session.delete(instance)
        self.flush()

    def flush(self) -> None:
        self.session.flush()
