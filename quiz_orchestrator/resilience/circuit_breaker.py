"""Per-agent circuit breaker gating calls to sibling agents."""
from __future__ import annotations

import time
from typing import Callable, Dict, Optional

import structlog

from quiz_orchestrator.core.models import CircuitBreakerState, CircuitState, utcnow

logger = structlog.get_logger(__name__)


class CircuitBreaker:
    """Closed/open/half-open state machine kept separately for every agent.

    The breaker only answers whether a call should be attempted; callers
    report outcomes through ``record_success`` and ``record_failure``.
    Thresholds apply to the whole instance, not per agent.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout_seconds: float = 60.0,
        success_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.success_threshold = success_threshold
        self._clock = clock
        self._breakers: Dict[str, CircuitBreakerState] = {}

    def is_available(self, agent_id: str) -> bool:
        """Return whether a call to ``agent_id`` may be attempted.

        An open breaker whose timeout has elapsed moves to half-open as a
        side effect of this check.
        """
        breaker = self._breakers.get(agent_id)
        if breaker is None or breaker.state is CircuitState.CLOSED:
            return True
        if breaker.state is CircuitState.HALF_OPEN:
            return True

        if (
            breaker.last_failure_time is not None
            and self._clock() - breaker.last_failure_time > self.timeout_seconds
        ):
            breaker.state = CircuitState.HALF_OPEN
            breaker.success_count = 0
            logger.info("circuit_half_open", agent_id=agent_id)
            return True
        return False

    def record_success(self, agent_id: str) -> None:
        breaker = self._get_or_create(agent_id)
        breaker.success_count += 1
        breaker.failure_count = 0

        if (
            breaker.state is CircuitState.HALF_OPEN
            and breaker.success_count >= self.success_threshold
        ):
            breaker.state = CircuitState.CLOSED
            logger.info("circuit_closed", agent_id=agent_id)

    def record_failure(self, agent_id: str) -> None:
        breaker = self._get_or_create(agent_id)
        breaker.failure_count += 1
        breaker.last_failure_time = self._clock()
        breaker.last_failure_at = utcnow()

        if breaker.failure_count < self.failure_threshold:
            return
        if breaker.state is not CircuitState.OPEN:
            logger.warning(
                "circuit_opened",
                agent_id=agent_id,
                failures=breaker.failure_count,
                previous_state=breaker.state.value,
            )
        breaker.state = CircuitState.OPEN

    def get_status(self, agent_id: str) -> Optional[CircuitBreakerState]:
        return self._breakers.get(agent_id)

    def get_all_states(self) -> Dict[str, CircuitBreakerState]:
        return dict(self._breakers)

    def reset(self, agent_id: str) -> None:
        """Forget everything about one agent (manual intervention)."""
        self._breakers.pop(agent_id, None)

    def reset_all(self) -> None:
        self._breakers.clear()

    def _get_or_create(self, agent_id: str) -> CircuitBreakerState:
        breaker = self._breakers.get(agent_id)
        if breaker is None:
            breaker = CircuitBreakerState()
            self._breakers[agent_id] = breaker
        return breaker
