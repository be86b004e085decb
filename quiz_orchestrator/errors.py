"""Exception hierarchy shared by the orchestrator and its HTTP boundary."""
from __future__ import annotations

from typing import Optional


class OrchestratorError(Exception):
    """Base error carrying the HTTP status the API should answer with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class RequestError(OrchestratorError):
    """Malformed or incomplete request body."""

    status_code = 400


class UnknownActionError(RequestError):
    def __init__(self, action: object) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class NotFoundError(OrchestratorError):
    status_code = 404


class AgentCallError(OrchestratorError):
    """Transport failure or non-success answer from a sibling agent."""

    status_code = 502

    def __init__(self, message: str, agent_url: Optional[str] = None) -> None:
        super().__init__(message)
        self.agent_url = agent_url


class ProtocolError(AgentCallError):
    """The agent answered, but not in a shape we can use."""


class CircuitOpenError(AgentCallError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Circuit is open for agent: {agent_id}", agent_url=agent_id)


class DependencyError(OrchestratorError):
    def __init__(self, step_id: str, missing: list) -> None:
        super().__init__(
            f"Dependencies not met for step {step_id}: {', '.join(missing)}"
        )
        self.step_id = step_id
        self.missing = missing


class LLMError(OrchestratorError):
    status_code = 502


class LLMNotConfiguredError(LLMError):
    status_code = 503

    def __init__(self) -> None:
        super().__init__("LLM provider is not configured")
