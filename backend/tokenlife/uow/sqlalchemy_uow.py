"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from contextlib import suppress

from sqlalchemy import event
from sqlalchemy.orm import Session, scoped_session

from tokenlife.core.extensions import db
from tokenlife.repositories import RefreshTokenRepository, UserRepository
from tokenlife.uow.base import UnitOfWork


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Everything staged inside the ``with`` block is committed together or
    rolled back together; the refresh token store relies on this to couple
    eviction with insertion.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    Installs a ``before_flush`` guard for the duration of the block. On exit
    it rolls back when it started the transaction, and also when rejected
    changes are still pending in the session. ``commit()`` is disallowed.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)
        self._owns_txn = False
        self._guard_installed = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        # scoped_session does not proxy in_transaction(); ask the Session itself.
        self._owns_txn = not self._guard_target().in_transaction()
        event.listen(self._guard_target(), "before_flush", self._before_flush)
        self._guard_installed = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            session = self._guard_target()
            # Rejected changes must not survive into the caller's transaction.
            if self._owns_txn or session.new or session.dirty or session.deleted:
                session.rollback()
        finally:
            if self._guard_installed:
                with suppress(Exception):
                    event.remove(self._guard_target(), "before_flush", self._before_flush)
                self._guard_installed = False

    def _guard_target(self) -> Session:
        # Listen on the thread-local Session, never on the shared Session class.
        if isinstance(self.session, scoped_session):
            return self.session()
        return self.session

    @staticmethod
    def _before_flush(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )

    def commit(self) -> None:
        """
        Disallow commit in read-only Unit of Work.

        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()
