"""Shared fixtures for orchestrator tests."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict

import httpx
import pytest

from quiz_orchestrator.config import (
    AgentEndpoints,
    Config,
    DiscoveryConfig,
    ResilienceConfig,
    WorkflowConfig,
)

FRONTEND_URL = "http://localhost:3000"
QUIZ_URL = "http://localhost:4001"
MANUAL_URL = "http://localhost:4002"
SELF_URL = "http://localhost:5000"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Config:
    return Config(
        llm=None,
        discovery=DiscoveryConfig(
            agent_urls=(FRONTEND_URL, QUIZ_URL, SELF_URL),
            probe_timeout=0.5,
            health_timeout=0.5,
        ),
        endpoints=AgentEndpoints(
            quiz_agent_url=QUIZ_URL,
            frontend_agent_url=FRONTEND_URL,
            manual_agent_url=MANUAL_URL,
        ),
        resilience=ResilienceConfig(retry_attempts=2, retry_backoff_seconds=0.0),
        workflow=WorkflowConfig(step_timeout=1.0, task_poll_interval=0.0, task_poll_max_attempts=3),
    )


def agent_card(name: str, *skills: str) -> Dict[str, Any]:
    return {
        "name": name,
        "version": "1.0.0",
        "capabilities": {"streaming": False},
        "skills": [{"id": skill, "name": skill} for skill in skills],
    }


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def artifact_task(task_id: str, state: str, name: str = "quiz.json", result: Any = None) -> Dict[str, Any]:
    task: Dict[str, Any] = {"id": task_id, "status": {"state": state}}
    if result is not None:
        task["artifacts"] = [{"name": name, "parts": [{"kind": "text", "text": json.dumps(result)}]}]
    return task


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)
