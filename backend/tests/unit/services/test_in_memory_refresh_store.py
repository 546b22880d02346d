"""Unit tests for :class:`InMemoryRefreshTokenStore` (bound, FIFO, revoke)."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from tokenlife.services._shared.ports import (
    InMemoryRefreshTokenStore,
    RevokeResult,
    hash_secret,
)

T0 = datetime(2030, 1, 1, tzinfo=UTC)


def _add(store, principal_id, secret, *, at, days=7, ip=None):
    return store.add(
        principal_id=principal_id,
        secret=secret,
        created_at=at,
        expires_at=at + timedelta(days=days),
        issuing_ip=ip,
    )


@pytest.fixture()
def store():
    return InMemoryRefreshTokenStore(max_active=2)


class TestBoundAndEviction:
    def test_scenario_third_token_evicts_the_first(self, store):
        assert _add(store, "p1", "T1", at=T0) is None
        assert _add(store, "p1", "T2", at=T0 + timedelta(seconds=1)) is None

        evicted = _add(store, "p1", "T3", at=T0 + timedelta(seconds=2))

        assert evicted is not None and evicted.secret_hash == hash_secret("T1")
        assert store.validate("p1", "T1", now=T0 + timedelta(seconds=3)) is False
        assert store.validate("p1", "T2", now=T0 + timedelta(seconds=3)) is True
        assert store.validate("p1", "T3", now=T0 + timedelta(seconds=3)) is True

    def test_evicts_by_created_at_not_insertion_order(self, store):
        _add(store, "p1", "late", at=T0 + timedelta(minutes=5))
        _add(store, "p1", "early", at=T0)

        evicted = _add(store, "p1", "new", at=T0 + timedelta(minutes=10))

        assert evicted.secret_hash == hash_secret("early")

    def test_ties_on_created_at_evict_lowest_id(self, store):
        _add(store, "p1", "first", at=T0)
        _add(store, "p1", "second", at=T0)

        evicted = _add(store, "p1", "third", at=T0)

        assert evicted.secret_hash == hash_secret("first")

    def test_expired_rows_still_count_until_evicted(self, store):
        _add(store, "p1", "old", at=T0, days=1)
        _add(store, "p1", "mid", at=T0 + timedelta(days=2))
        later = T0 + timedelta(days=3)

        assert store.validate("p1", "old", now=later) is False
        assert len(store.list_for_principal("p1")) == 2

        evicted = _add(store, "p1", "new", at=later)
        assert evicted.secret_hash == hash_secret("old")

    def test_bound_is_per_principal(self, store):
        for i in range(2):
            _add(store, "p1", f"a{i}", at=T0 + timedelta(seconds=i))
            _add(store, "p2", f"b{i}", at=T0 + timedelta(seconds=i))

        assert len(store.list_for_principal("p1")) == 2
        assert len(store.list_for_principal("p2")) == 2

    def test_concurrent_adds_never_exceed_bound(self):
        store = InMemoryRefreshTokenStore(max_active=5)
        barrier = threading.Barrier(16)

        def login(i: int):
            barrier.wait()
            _add(store, "p1", f"secret-{i}", at=T0 + timedelta(microseconds=i))

        threads = [threading.Thread(target=login, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.list_for_principal("p1")) == 5

    @pytest.mark.parametrize("bound", [0, 11])
    def test_rejects_bound_outside_range(self, bound):
        with pytest.raises(ValueError):
            InMemoryRefreshTokenStore(max_active=bound)


class TestValidateAndRevoke:
    def test_validate_is_strictly_before_expiry(self, store):
        _add(store, "p1", "s", at=T0, days=1)
        expires = T0 + timedelta(days=1)

        assert store.validate("p1", "s", now=expires - timedelta(microseconds=1)) is True
        assert store.validate("p1", "s", now=expires) is False

    def test_validate_is_scoped_to_principal(self, store):
        _add(store, "p1", "s", at=T0)
        assert store.validate("p2", "s", now=T0) is False

    def test_revoke_then_validate_is_invalid(self, store):
        _add(store, "p1", "s", at=T0)

        assert store.revoke("p1", "s") is RevokeResult.REMOVED
        assert store.validate("p1", "s", now=T0) is False

    def test_revoke_twice_reports_not_found(self, store):
        _add(store, "p1", "s", at=T0)
        store.revoke("p1", "s")

        assert store.revoke("p1", "s") is RevokeResult.NOT_FOUND

    def test_revoke_unknown_has_no_side_effects(self, store):
        _add(store, "p1", "s", at=T0)

        assert store.revoke("p1", "other") is RevokeResult.NOT_FOUND
        assert store.revoke("p2", "s") is RevokeResult.NOT_FOUND
        assert store.validate("p1", "s", now=T0) is True

    def test_revoke_all(self, store):
        _add(store, "p1", "a", at=T0)
        _add(store, "p1", "b", at=T0)

        assert store.revoke_all("p1") == 2
        assert store.list_for_principal("p1") == []
        assert store.revoke_all("p1") == 0


class TestIssuingIp:
    def test_lookup_returns_stored_ip(self, store):
        _add(store, "p1", "s", at=T0, ip="10.0.0.1")
        assert store.lookup_issuing_ip("s") == "10.0.0.1"

    def test_lookup_unknown_is_empty_string(self, store):
        _add(store, "p1", "s", at=T0)
        assert store.lookup_issuing_ip("s") == ""
        assert store.lookup_issuing_ip("missing") == ""


def test_secret_is_never_stored_in_clear(store):
    _add(store, "p1", "plain-secret", at=T0)

    (view,) = store.list_for_principal("p1")
    assert "plain-secret" not in repr(view)
    assert view.secret_hash == hash_secret("plain-secret")
