"""
Unit tests for the keyed lock used to serialize state updates.
"""

import threading
import time

from memora.db.locks import KeyedLock, mastery_key, memory_key, session_key


def test_key_format():
    assert memory_key("alice", "fc-1") == "memory:alice:fc-1"
    assert mastery_key("alice", "ku-osi") == "mastery:alice:ku-osi"
    assert session_key("s-1") == "session:s-1"


def test_idle_keys_are_dropped():
    locks = KeyedLock()
    with locks.hold("a", "b"):
        assert len(locks) == 2
    assert len(locks) == 0


def test_released_after_exception():
    locks = KeyedLock()
    try:
        with locks.hold("a"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(locks) == 0
    with locks.hold("a"):
        pass


def test_same_key_is_serialized():
    locks = KeyedLock()
    active = 0
    peak = 0
    guard = threading.Lock()

    def work():
        nonlocal active, peak
        with locks.hold("memory:alice:fc-1"):
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with guard:
                active -= 1

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert peak == 1
    assert len(locks) == 0


def test_different_keys_do_not_block():
    locks = KeyedLock()
    entered = threading.Event()

    def other():
        with locks.hold("memory:alice:fc-2"):
            entered.set()

    with locks.hold("memory:alice:fc-1"):
        t = threading.Thread(target=other)
        t.start()
        assert entered.wait(timeout=2)
        t.join()


def test_overlapping_key_sets_in_any_order_do_not_deadlock():
    locks = KeyedLock()
    done = []

    def work(keys):
        for _ in range(50):
            with locks.hold(*keys):
                pass
        done.append(keys)

    t1 = threading.Thread(target=work, args=(("x", "y"),))
    t2 = threading.Thread(target=work, args=(("y", "x"),))
    t1.start()
    t2.start()
    t1.join(timeout=5)
    t2.join(timeout=5)

    assert len(done) == 2
