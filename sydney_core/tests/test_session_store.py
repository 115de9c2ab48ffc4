import threading
import time

import pytest

from sydney_core.domain.exceptions import AuthenticationFailed
from sydney_core.sessions.gate import RequestGate
from sydney_core.sessions.store import SessionStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    def __init__(self, user_id: str, error=None):
        self.user_id = user_id
        self.error = error
        self.negotiations = 0
        self.closed = False

    def create_conversation(self):
        self.negotiations += 1
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class Factory:
    def __init__(self, error=None):
        self.created = []
        self.error = error

    def __call__(self, user_id):
        session = FakeSession(user_id, self.error)
        self.created.append(session)
        return session


def _store(factory=None, clock=None, **kw):
    return SessionStore(factory or Factory(), ttl=300, clock=clock or FakeClock(), start_sweeper=False, **kw)


def test_get_or_create_reuses_session():
    factory = Factory()
    store = _store(factory)
    first = store.get_or_create("u1")
    second = store.get_or_create("u1")
    assert first is second
    assert first.negotiations == 1
    assert len(factory.created) == 1
    assert "u1" in store


def test_users_get_separate_sessions():
    store = _store()
    assert store.get_or_create("u1") is not store.get_or_create("u2")
    assert len(store) == 2


def test_ttl_slides_on_access():
    clock = FakeClock()
    store = _store(clock=clock)
    session = store.get_or_create("u1")
    clock.advance(200)
    assert store.get_or_create("u1") is session
    clock.advance(200)
    assert store.get("u1") is session
    clock.advance(299)
    assert store.get("u1") is session


def test_expired_session_is_replaced_and_closed():
    clock = FakeClock()
    evicted = []
    store = _store(clock=clock, on_evicted=evicted.append)
    old = store.get_or_create("u1")
    clock.advance(301)

    assert store.get("u1") is None
    assert old.closed
    assert evicted == ["u1"]

    new = store.get_or_create("u1")
    assert new is not old


def test_sweep_evicts_only_expired_entries():
    clock = FakeClock()
    evicted = []
    store = _store(clock=clock, on_evicted=evicted.append)
    store.get_or_create("idle")
    clock.advance(200)
    store.get_or_create("active")
    clock.advance(150)

    assert store.sweep() == ["idle"]
    assert evicted == ["idle"]
    assert "active" in store
    assert "idle" not in store


def test_negotiation_failure_is_not_cached():
    factory = Factory(error=AuthenticationFailed("bad cookie"))
    store = _store(factory)
    with pytest.raises(AuthenticationFailed):
        store.get_or_create("u1")
    assert "u1" not in store
    assert len(store) == 0


def test_remove_and_close():
    evicted = []
    store = _store(on_evicted=evicted.append)
    a = store.get_or_create("a")
    b = store.get_or_create("b")

    assert store.remove("a") is True
    assert store.remove("a") is False
    store.close()

    assert a.closed and b.closed
    assert sorted(evicted) == ["a", "b"]
    assert len(store) == 0


def test_idle_session_drops_gate_entry():
    clock = FakeClock()
    gate = RequestGate()
    store = _store(clock=clock, on_evicted=gate.forget_idle)
    store.get_or_create("u1")
    assert gate.try_enter("u1")
    gate.leave("u1")
    assert "u1" in gate

    clock.advance(301)

    assert store.get("u1") is None
    assert "u1" not in gate


def test_eviction_keeps_gate_entry_of_request_in_flight():
    clock = FakeClock()
    gate = RequestGate()
    store = _store(clock=clock, on_evicted=gate.forget_idle)
    store.get_or_create("u1")
    assert gate.try_enter("u1")

    clock.advance(301)

    assert store.sweep() == ["u1"]
    assert gate.is_busy("u1")
    assert not gate.try_enter("u1")


def test_slow_close_does_not_block_other_users():
    clock = FakeClock()
    store = _store(clock=clock)
    slow = store.get_or_create("slow")
    closing = threading.Event()
    finish = threading.Event()

    def close():
        closing.set()
        finish.wait(5)
        slow.closed = True

    slow.close = close
    clock.advance(301)
    sweeper = threading.Thread(target=store.sweep)
    sweeper.start()
    assert closing.wait(5)

    created = threading.Event()
    other = threading.Thread(target=lambda: (store.get_or_create("other"), created.set()))
    other.start()
    try:
        assert created.wait(1)
    finally:
        finish.set()
        sweeper.join(5)
        other.join(5)
    assert slow.closed
    assert "other" in store


def test_background_sweeper_evicts():
    evicted = []
    store = SessionStore(Factory(), ttl=0.05, sweep_interval=0.01, on_evicted=evicted.append)
    try:
        store.get_or_create("u1")
        deadline = time.monotonic() + 2
        while not evicted and time.monotonic() < deadline:
            time.sleep(0.01)
        assert evicted == ["u1"]
    finally:
        store.close()
