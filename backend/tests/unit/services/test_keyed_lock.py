"""Unit tests for the per-key lock registry."""

from __future__ import annotations

import threading
import time

from tokenlife.services._shared.locks import KeyedLock


def test_same_key_is_mutually_exclusive():
    locks = KeyedLock()
    inside = 0
    peak = 0
    guard = threading.Lock()

    def worker():
        nonlocal inside, peak
        with locks.hold("alice"):
            with guard:
                inside += 1
                peak = max(peak, inside)
            time.sleep(0.005)
            with guard:
                inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert peak == 1


def test_different_keys_do_not_contend():
    locks = KeyedLock()
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold("alice"):
            entered.set()
            release.wait(timeout=2)

    t = threading.Thread(target=holder)
    t.start()
    entered.wait(timeout=2)
    try:
        acquired = threading.Event()

        def other():
            with locks.hold("bob"):
                acquired.set()

        o = threading.Thread(target=other)
        o.start()
        assert acquired.wait(timeout=1)
        o.join()
    finally:
        release.set()
        t.join()


def test_registry_drops_idle_entries():
    locks = KeyedLock()
    with locks.hold("a"), locks.hold("b"):
        assert len(locks) == 2
    assert len(locks) == 0
