import threading
import time

from sydney_core.api.service import RESET_FAILED_ANSWER, UNKNOWN_COMMAND_ANSWER, SessionOrchestrator
from sydney_core.domain.exceptions import AuthenticationFailed, ConnectError
from sydney_core.domain.models import InboundEvent
from sydney_core.providers.session import FALLBACK_ANSWER, ChatSession
from sydney_core.sessions.gate import RequestGate
from sydney_core.sessions.store import SessionStore
from sydney_core.tests.fakes import (
    HANDSHAKE_REPLY,
    Block,
    FakeNegotiator,
    FakeTransport,
    TransportQueue,
    terminal,
)


class SettingsStub:
    fallback_answer = "fallback"
    repeated_answer = "busy, please wait"
    command_reset_answer = "reset done"
    command_start_answer = "welcome"
    command_help_answer = "help text"


def _orchestrator(*transports, negotiator=None, clock=time.monotonic):
    negotiator = negotiator or FakeNegotiator()
    sessions = []

    def factory(user_id):
        session = ChatSession(negotiator, TransportQueue(*transports))
        sessions.append(session)
        return session

    gate = RequestGate()
    store = SessionStore(factory, ttl=300, clock=clock, start_sweeper=False, on_evicted=gate.forget_idle)
    return SessionOrchestrator(store, gate, SettingsStub()), sessions


def test_prompt_end_to_end():
    orch, sessions = _orchestrator(FakeTransport([HANDSHAKE_REPLY, terminal("hello")]))
    assert orch.handle("u1", InboundEvent.from_text("hi")) == "hello"
    assert sessions[0].invocation_counter == 1
    assert not orch.gate.is_busy("u1")
    assert "u1" in orch.gate


def test_service_error_is_the_reply():
    orch, _ = _orchestrator(FakeTransport([HANDSHAKE_REPLY, terminal(value="error", message="rate limited")]))
    assert orch.handle("u1", InboundEvent.from_text("hi")) == "rate limited"


def test_concurrent_prompt_from_same_user_is_rejected():
    block = Block()
    orch, _ = _orchestrator(FakeTransport([HANDSHAKE_REPLY, block, terminal("hello")]))
    result = {}

    def first():
        result["first"] = orch.handle("u1", InboundEvent.from_text("hi"))

    worker = threading.Thread(target=first)
    worker.start()
    assert block.reached.wait(5)

    assert orch.handle("u1", InboundEvent.from_text("again")) == "busy, please wait"
    assert len(orch.store) == 1

    block.release.set()
    worker.join(5)
    assert result["first"] == "hello"


def test_negotiation_failure_replies_fallback_and_leaves_no_gate_entry():
    orch, _ = _orchestrator(negotiator=FakeNegotiator(error=AuthenticationFailed("bad cookie")))
    assert orch.handle("u1", InboundEvent.from_text("hi")) == "fallback"
    assert "u1" not in orch.store
    assert "u1" not in orch.gate


def test_connect_failure_replies_fallback():
    orch, _ = _orchestrator(ConnectError(message="down"))
    assert orch.handle("u1", InboundEvent.from_text("hi")) == "fallback"
    assert not orch.gate.is_busy("u1")


def test_empty_answer_replies_fallback():
    orch, _ = _orchestrator(FakeTransport([HANDSHAKE_REPLY, terminal("")]))
    assert orch.handle("u1", InboundEvent.from_text("hi")) == "fallback"


def test_simple_commands_do_not_create_sessions():
    orch, sessions = _orchestrator()
    assert orch.handle("u1", InboundEvent.from_text("/start")) == "welcome"
    assert orch.handle("u1", InboundEvent.from_text("/help")) == "help text"
    assert orch.handle("u1", InboundEvent.from_text("/dance")) == UNKNOWN_COMMAND_ANSWER
    assert sessions == []
    assert "u1" not in orch.gate


def test_reset_command_renegotiates():
    negotiator = FakeNegotiator()
    orch, sessions = _orchestrator(FakeTransport([HANDSHAKE_REPLY, terminal("hello")]), negotiator=negotiator)
    orch.handle("u1", InboundEvent.from_text("hi"))
    session = sessions[0]

    assert orch.handle("u1", InboundEvent.from_text("/reset")) == "reset done"
    assert session.invocation_counter == 0
    assert not session.connected
    assert negotiator.calls == 2


def test_reset_command_negotiation_failure():
    negotiator = FakeNegotiator()
    orch, _ = _orchestrator(negotiator=negotiator)
    orch.store.get_or_create("u1")
    negotiator.error = AuthenticationFailed("expired")
    assert orch.handle("u1", InboundEvent.from_text("/reset")) == RESET_FAILED_ANSWER


def test_close_evicts_sessions_and_gate_entries():
    orch, sessions = _orchestrator(FakeTransport([HANDSHAKE_REPLY, terminal("hello")]))
    orch.handle("u1", InboundEvent.from_text("hi"))
    orch.close()
    assert len(orch.store) == 0
    assert "u1" not in orch.gate
    assert not sessions[0].connected


def test_session_expiring_mid_turn_ends_the_turn():
    now = [1000.0]
    block = Block()
    first = FakeTransport([HANDSHAKE_REPLY, block, terminal("late")])
    spare = FakeTransport([HANDSHAKE_REPLY, terminal("never")])
    orch, sessions = _orchestrator(first, spare, clock=lambda: now[0])
    result = {}

    def ask():
        result["reply"] = orch.handle("u1", InboundEvent.from_text("hi"))

    worker = threading.Thread(target=ask)
    worker.start()
    assert block.reached.wait(5)

    now[0] += 301
    assert orch.store.sweep() == ["u1"]
    worker.join(5)

    assert not worker.is_alive()
    assert result["reply"] == FALLBACK_ANSWER
    assert first.closed
    assert spare.send_calls == 0
    assert sessions[0].closed
    assert "u1" not in orch.gate
