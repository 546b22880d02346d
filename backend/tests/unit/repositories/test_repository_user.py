"""Unit tests for UserRepository."""

import pytest

from tests.factories.user import UserFactory
from tokenlife.repositories.user import UserRepository


class TestUserRepository:
    """Ensure ``UserRepository`` performs core persistence operations."""

    @pytest.fixture()
    def repo(self):
        return UserRepository()

    def test_create_and_get_user(self, repo, session):
        """Create a user and fetch it by email to verify retrieval."""
        u = UserFactory(email="alice@example.com")
        session.commit()

        fetched = repo.get_by_email("  ALICE@example.com")
        assert fetched is not None
        assert fetched.id == u.id

    def test_exists_by_email(self, repo, session):
        """Return existence flags for known and unknown email addresses."""
        UserFactory(email="bob@example.com")
        session.commit()

        assert repo.exists_by_email("bob@example.com")
        assert not repo.exists_by_email("nonexistent@example.com")

    def test_authenticate_valid_and_invalid(self, repo, session):
        """Authenticate with correct credentials and reject invalid attempts."""
        UserFactory(email="auth@example.com", password="strongpass")
        session.commit()

        assert repo.authenticate("auth@example.com", "strongpass") is not None
        assert repo.authenticate("auth@example.com", "wrongpass") is None
        assert repo.authenticate("nope@example.com", "strongpass") is None

    def test_create_with_roles_reuses_existing(self, repo, session):
        first = repo.create(email="r1@example.com", password="pw", roles=["user", "Admin"])
        second = repo.create(email="r2@example.com", password="pw", roles=["user"])
        session.commit()

        assert first.role_names == frozenset({"admin", "user"})
        assert [r.id for r in second.roles] == [
            r.id for r in first.roles if r.name == "user"
        ]

    def test_grant_roles_is_additive(self, repo, session):
        user = UserFactory(roles=["user"])
        session.commit()

        repo.grant_roles(user, ["admin", "USER"])
        session.commit()

        assert user.role_names == frozenset({"admin", "user"})
        assert len(user.roles) == 2

    def test_get_for_update(self, repo, session):
        user = UserFactory()
        session.commit()

        assert repo.get_for_update(user.id).id == user.id
        assert repo.get_for_update(999_999) is None
