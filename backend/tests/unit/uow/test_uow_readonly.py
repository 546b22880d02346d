import pytest

from tests.factories.user import UserFactory
from tokenlife.models.user import User
from tokenlife.uow import (
    SQLAlchemyReadOnlyUnitOfWork as ROuow,
)
from tokenlife.uow import (
    SQLAlchemyUnitOfWork as RWuow,
)


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, app, db, session):
        """
        Ensure that attempting to flush ORM changes inside the RO UoW raises.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            # Add a transient object; any flush/autoflush must be blocked.
            uow.session.add(User(email="ro@example.com", password_hash="x"))
            uow.session.flush()

    def test_allows_reads(self, app, db, session):
        """
        Read operations should work normally within RO UoW.
        """
        with RWuow() as uow:
            uow.users.create(email="reader@example.com", password="Passw0rd!")

        with ROuow() as uow:
            assert uow.users.get_by_email("reader@example.com") is not None
            assert uow.users.count() >= 1

    def test_disallows_commit(self, app, db, session):
        """
        RO UoW must reject commit() by design.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_always_rolls_back_changes(self, app, db, session):
        """
        Any attempted modifications must not persist after RO UoW exits.
        """
        user = UserFactory()
        session.commit()
        user_id = user.id
        original_email = user.email

        # Attempt to mutate inside RO scope -> should be blocked on flush
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            u = uow.session.get(User, user_id)
            u.email = "mutated-in-ro@example.com"
            uow.session.flush()

        with RWuow() as uow:
            persisted = uow.session.get(User, user_id)
            assert persisted.email == original_email

    def test_guard_is_removed_on_exit(self, app, db, session):
        with ROuow():
            pass

        with RWuow() as uow:
            uow.users.create(email="after-ro@example.com", password="Passw0rd!")

        assert session.query(User).filter_by(email="after-ro@example.com").count() == 1

    def test_joins_open_transaction_on_scoped_session(self, app, db, session):
        """
        Entering inside an already open transaction reads normally and leaves
        that transaction to its owner.
        """
        user = UserFactory()
        session.flush()
        assert session().in_transaction()

        with ROuow() as uow:
            assert uow.users.get(user.id) is not None

        assert session().in_transaction()
        assert user in session
