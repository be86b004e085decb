"""Circuit breaker state transitions."""
from __future__ import annotations

from quiz_orchestrator.core.models import CircuitState
from quiz_orchestrator.resilience.circuit_breaker import CircuitBreaker


def _breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=3, timeout_seconds=60, success_threshold=2, clock=clock)


def test_unknown_agent_is_available(clock) -> None:
    breaker = _breaker(clock)
    assert breaker.is_available("http://localhost:4001")
    assert breaker.get_status("http://localhost:4001") is None


def test_opens_after_threshold_until_timeout(clock) -> None:
    breaker = _breaker(clock)
    agent = "http://localhost:4001"

    for _ in range(2):
        breaker.record_failure(agent)
    assert breaker.is_available(agent)
    assert breaker.get_status(agent).state is CircuitState.CLOSED

    breaker.record_failure(agent)
    assert breaker.get_status(agent).state is CircuitState.OPEN
    assert not breaker.is_available(agent)

    clock.advance(30)
    assert not breaker.is_available(agent)

    clock.advance(31)
    assert breaker.is_available(agent)
    assert breaker.get_status(agent).state is CircuitState.HALF_OPEN


def test_half_open_closes_after_enough_successes(clock) -> None:
    breaker = _breaker(clock)
    agent = "http://localhost:4001"
    for _ in range(3):
        breaker.record_failure(agent)
    clock.advance(61)
    assert breaker.is_available(agent)

    breaker.record_success(agent)
    assert breaker.get_status(agent).state is CircuitState.HALF_OPEN
    breaker.record_success(agent)

    state = breaker.get_status(agent)
    assert state.state is CircuitState.CLOSED
    assert breaker.is_available(agent)


def test_success_resets_failure_count(clock) -> None:
    breaker = _breaker(clock)
    agent = "http://localhost:3000"

    breaker.record_failure(agent)
    breaker.record_failure(agent)
    breaker.record_success(agent)
    assert breaker.get_status(agent).failure_count == 0

    breaker.record_failure(agent)
    breaker.record_failure(agent)
    assert breaker.is_available(agent)


def test_breakers_are_independent_per_agent(clock) -> None:
    breaker = _breaker(clock)
    for _ in range(3):
        breaker.record_failure("http://localhost:4001")

    assert not breaker.is_available("http://localhost:4001")
    assert breaker.is_available("http://localhost:3000")
    assert set(breaker.get_all_states()) == {"http://localhost:4001"}


def test_reset_forgets_state(clock) -> None:
    breaker = _breaker(clock)
    for _ in range(3):
        breaker.record_failure("http://localhost:4001")

    breaker.reset("http://localhost:4001")
    assert breaker.is_available("http://localhost:4001")

    breaker.record_failure("http://localhost:3000")
    breaker.reset_all()
    assert breaker.get_all_states() == {}


def test_state_serializes_with_wire_values(clock) -> None:
    breaker = _breaker(clock)
    for _ in range(3):
        breaker.record_failure("http://localhost:4001")

    payload = breaker.get_status("http://localhost:4001").to_dict()
    assert payload["state"] == "open"
    assert payload["failure_count"] == 3
    assert payload["last_failure_at"] is not None
