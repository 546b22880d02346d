"""Tests for :class:`SQLRefreshTokenStore` against the transactional SQLite session."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from tests.factories.user import UserFactory
from tokenlife.infra.sql.sql_refresh_token_store import SQLRefreshTokenStore
from tokenlife.models.refresh_token import RefreshToken
from tokenlife.services._shared.errors import PrincipalNotFound
from tokenlife.services._shared.ports import RevokeResult, hash_secret

T0 = datetime(2030, 1, 1, tzinfo=UTC)


@pytest.fixture()
def store():
    return SQLRefreshTokenStore(max_active=2)


@pytest.fixture()
def user(session):
    user = UserFactory()
    session.commit()
    return user


def _add(store, user, secret, *, at, days=7, ip=None):
    return store.add(
        principal_id=str(user.id),
        secret=secret,
        created_at=at,
        expires_at=at + timedelta(days=days),
        issuing_ip=ip,
    )


def _rows(session, user) -> int:
    return session.execute(
        select(func.count()).select_from(RefreshToken).where(RefreshToken.user_id == user.id)
    ).scalar_one()


class TestAdd:
    def test_persists_hash_and_metadata(self, store, user, session):
        _add(store, user, "s1", at=T0, ip="2001:db8::1")

        row = session.execute(select(RefreshToken)).scalars().one()
        assert row.secret_hash == hash_secret("s1")
        assert row.secret_hash != "s1"
        assert row.issuing_ip == "2001:db8::1"
        assert row.created_at == T0
        assert row.expires_at.tzinfo is not None

    def test_third_token_evicts_oldest_in_same_transaction(self, store, user, session):
        _add(store, user, "T1", at=T0)
        _add(store, user, "T2", at=T0 + timedelta(seconds=1))

        evicted = _add(store, user, "T3", at=T0 + timedelta(seconds=2))

        assert evicted.secret_hash == hash_secret("T1")
        assert _rows(session, user) == 2
        now = T0 + timedelta(seconds=3)
        assert store.validate(str(user.id), "T1", now=now) is False
        assert store.validate(str(user.id), "T2", now=now) is True
        assert store.validate(str(user.id), "T3", now=now) is True

    def test_failed_insert_rolls_back_eviction(self, store, user, session):
        _add(store, user, "T1", at=T0)
        _add(store, user, "T2", at=T0 + timedelta(seconds=1))

        # Same secret as T2 violates the unique digest index after T1 is evicted.
        with pytest.raises(IntegrityError):
            _add(store, user, "T2", at=T0 + timedelta(seconds=2))

        assert store.validate(str(user.id), "T1", now=T0) is True
        assert _rows(session, user) == 2

    def test_unknown_principal(self, store, session):
        with pytest.raises(PrincipalNotFound):
            store.add(
                principal_id="999999",
                secret="s",
                created_at=T0,
                expires_at=T0 + timedelta(days=1),
            )

    def test_bound_is_per_principal(self, store, user, session):
        other = UserFactory()
        session.commit()
        for i in range(2):
            _add(store, user, f"a{i}", at=T0 + timedelta(seconds=i))
            _add(store, other, f"b{i}", at=T0 + timedelta(seconds=i))

        assert len(store.list_for_principal(str(user.id))) == 2
        assert len(store.list_for_principal(str(other.id))) == 2


class TestValidateRevoke:
    def test_expiry_is_exclusive(self, store, user):
        _add(store, user, "s", at=T0, days=1)
        expires = T0 + timedelta(days=1)

        assert store.validate(str(user.id), "s", now=expires - timedelta(seconds=1)) is True
        assert store.validate(str(user.id), "s", now=expires) is False

    def test_revoke_is_idempotent(self, store, user):
        _add(store, user, "s", at=T0)

        assert store.revoke(str(user.id), "s") is RevokeResult.REMOVED
        assert store.revoke(str(user.id), "s") is RevokeResult.NOT_FOUND
        assert store.validate(str(user.id), "s", now=T0) is False

    def test_revoke_requires_owner(self, store, user, session):
        other = UserFactory()
        session.commit()
        _add(store, user, "s", at=T0)

        assert store.revoke(str(other.id), "s") is RevokeResult.NOT_FOUND
        assert store.validate(str(user.id), "s", now=T0) is True

    def test_lookup_issuing_ip(self, store, user):
        _add(store, user, "s", at=T0, ip="10.0.0.1")
        _add(store, user, "t", at=T0)

        assert store.lookup_issuing_ip("s") == "10.0.0.1"
        assert store.lookup_issuing_ip("t") == ""
        assert store.lookup_issuing_ip("missing") == ""

    def test_list_and_revoke_all(self, store, user):
        _add(store, user, "late", at=T0 + timedelta(hours=1))
        _add(store, user, "early", at=T0)

        views = store.list_for_principal(str(user.id))
        assert [v.secret_hash for v in views] == [hash_secret("early"), hash_secret("late")]

        assert store.revoke_all(str(user.id)) == 2
        assert store.list_for_principal(str(user.id)) == []

    def test_non_numeric_principal_is_unknown(self, store):
        assert store.validate("abc", "s", now=T0) is False
        assert store.revoke("abc", "s") is RevokeResult.NOT_FOUND
        assert store.list_for_principal("abc") == []


class TestConcurrency:
    def test_concurrent_logins_never_exceed_bound(self, store, user, session):
        principal_id = str(user.id)
        barrier = threading.Barrier(8)
        errors: list[Exception] = []

        def login(i: int) -> None:
            barrier.wait()
            try:
                store.add(
                    principal_id=principal_id,
                    secret=f"secret-{i}",
                    created_at=T0 + timedelta(seconds=i),
                    expires_at=T0 + timedelta(days=7),
                )
            except Exception as exc:
                errors.append(exc)
            finally:
                # Each thread got its own scoped Session.
                session.remove()

        threads = [threading.Thread(target=login, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.list_for_principal(principal_id)) == 2
        assert _rows(session, user) == 2
