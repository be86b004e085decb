"""Workflow engine step sequencing and failure handling."""
from __future__ import annotations

import json

import httpx
import pytest

from conftest import FRONTEND_URL, QUIZ_URL, json_response, mock_http
from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.core.models import StepStatus, WorkflowStep
from quiz_orchestrator.errors import AgentCallError, CircuitOpenError, DependencyError
from quiz_orchestrator.orchestration.engine import WorkflowEngine
from quiz_orchestrator.resilience.circuit_breaker import CircuitBreaker
from quiz_orchestrator.services.a2a_client import A2AClient


class Recorder:
    """MockTransport handler that remembers every request it answers."""

    def __init__(self, fail_ports=()) -> None:
        self.fail_ports = set(fail_ports)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.url.port, json.loads(request.content)))
        if request.url.port in self.fail_ports:
            return json_response({"error": "boom"}, status_code=500)
        return json_response({"data": {"port": request.url.port}})


def _engine(recorder: Recorder, breaker: CircuitBreaker = None) -> WorkflowEngine:
    return WorkflowEngine(
        client=A2AClient(mock_http(recorder)),
        breaker=breaker or CircuitBreaker(),
        chat_log=ChatLog(),
        step_timeout=1.0,
    )


def _two_steps():
    return [
        WorkflowStep(id="step_1", agent_id=QUIZ_URL, skill_id="generate-quiz", input={"topic": "Cells"}),
        WorkflowStep(
            id="step_2",
            agent_id=FRONTEND_URL,
            skill_id="display_quiz",
            dependencies=["step_1"],
        ),
    ]


@pytest.mark.anyio
async def test_completed_iff_every_step_completed() -> None:
    recorder = Recorder()
    engine = _engine(recorder)
    workflow = engine.create("Quiz", "quiz", _two_steps())

    results = await engine.run(workflow)

    assert workflow.status is StepStatus.COMPLETED
    assert all(step.status is StepStatus.COMPLETED for step in workflow.steps)
    assert workflow.completed_at is not None
    assert results == [{"port": 4001}, {"port": 3000}]
    # The second step receives the first step's result.
    assert recorder.requests[1][1]["input"]["dependency_results"] == {"step_1": {"port": 4001}}


@pytest.mark.anyio
async def test_failed_step_fails_workflow_and_skips_the_rest() -> None:
    recorder = Recorder(fail_ports={4001})
    engine = _engine(recorder)
    workflow = engine.create("Quiz", "quiz", _two_steps())

    with pytest.raises(AgentCallError):
        await engine.run(workflow)

    first, second = workflow.steps
    assert workflow.status is StepStatus.FAILED
    assert first.status is StepStatus.FAILED
    assert "500" in first.error
    assert second.status is StepStatus.PENDING
    assert len(recorder.requests) == 1


@pytest.mark.anyio
async def test_unmet_dependency_never_runs() -> None:
    recorder = Recorder()
    engine = _engine(recorder)
    workflow = engine.create(
        "Broken",
        "quiz",
        [WorkflowStep(id="step_2", agent_id=FRONTEND_URL, skill_id="display_quiz", dependencies=["step_1"])],
    )

    with pytest.raises(DependencyError, match="step_1"):
        await engine.run(workflow)

    step = workflow.steps[0]
    assert step.status is StepStatus.FAILED
    assert step.result is None
    assert recorder.requests == []
    assert workflow.status is StepStatus.FAILED
    statuses = [e.metadata["status"] for e in engine._chat_log.get_by_workflow(workflow.id)]
    assert statuses == ["failed"]


@pytest.mark.anyio
async def test_open_circuit_short_circuits_the_call(clock) -> None:
    breaker = CircuitBreaker(failure_threshold=1, clock=clock)
    breaker.record_failure(QUIZ_URL)
    recorder = Recorder()
    engine = _engine(recorder, breaker)
    workflow = engine.create("Quiz", "quiz", _two_steps())

    with pytest.raises(CircuitOpenError):
        await engine.run(workflow)
    assert recorder.requests == []


@pytest.mark.anyio
async def test_outcomes_feed_the_breaker(clock) -> None:
    breaker = CircuitBreaker(clock=clock)
    engine = _engine(Recorder(fail_ports={3000}), breaker)
    workflow = engine.create("Quiz", "quiz", _two_steps())

    with pytest.raises(AgentCallError):
        await engine.run(workflow)

    assert breaker.get_status(QUIZ_URL).success_count == 1
    assert breaker.get_status(FRONTEND_URL).failure_count == 1


@pytest.mark.anyio
async def test_workflow_runs_once() -> None:
    engine = _engine(Recorder())
    workflow = engine.create("Quiz", "quiz", _two_steps()[:1])
    await engine.run(workflow)

    with pytest.raises(RuntimeError):
        await engine.run(workflow)


@pytest.mark.anyio
async def test_step_events_are_logged_per_workflow() -> None:
    engine = _engine(Recorder())
    workflow = engine.create("Quiz", "quiz", _two_steps())
    await engine.run(workflow)

    events = engine._chat_log.get_by_workflow(workflow.id)
    assert [e.metadata["status"] for e in events] == ["running", "completed", "running", "completed"]
    assert engine.get(workflow.id) is workflow
    assert engine.get_all() == [workflow]
