"""Sequential workflow execution against sibling agents."""
from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional

import structlog

from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.core.models import (
    MessageType,
    StepStatus,
    Workflow,
    WorkflowStep,
    utcnow,
)
from quiz_orchestrator.errors import CircuitOpenError, DependencyError
from quiz_orchestrator.resilience.circuit_breaker import CircuitBreaker
from quiz_orchestrator.services.a2a_client import A2AClient

logger = structlog.get_logger(__name__)


class WorkflowEngine:
    """Run hand-authored step lists one step at a time, in list order.

    A workflow is one-shot: the first failing step fails the whole workflow,
    nothing is retried and completed steps are not rolled back.
    """

    def __init__(
        self,
        *,
        client: A2AClient,
        breaker: CircuitBreaker,
        chat_log: ChatLog,
        step_timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._breaker = breaker
        self._chat_log = chat_log
        self.step_timeout = step_timeout
        self._workflows: Dict[str, Workflow] = {}

    def create(self, name: str, kind: str, steps: Iterable[WorkflowStep]) -> Workflow:
        workflow = Workflow(
            id=f"workflow_{uuid.uuid4().hex[:12]}",
            name=name,
            kind=kind,
            steps=list(steps),
        )
        self._workflows[workflow.id] = workflow
        return workflow

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    def get_all(self) -> List[Workflow]:
        return list(self._workflows.values())

    async def run(self, workflow: Workflow) -> List[Dict[str, Any]]:
        """Execute every step and return their results in order.

        Raises whatever the failing step raised, after marking the step and
        the workflow as failed.
        """
        if workflow.status is not StepStatus.PENDING:
            raise RuntimeError(f"Workflow {workflow.id} has already run")

        workflow.status = StepStatus.RUNNING
        log = logger.bind(workflow_id=workflow.id, kind=workflow.kind)
        log.info("workflow_started", steps=len(workflow.steps))

        results: List[Dict[str, Any]] = []
        for step in workflow.steps:
            try:
                self._check_dependencies(workflow, step)
                step.status = StepStatus.RUNNING
                self._event(
                    workflow,
                    step,
                    MessageType.ORCHESTRATOR,
                    f"Executing step: {step.skill_id} on {step.agent_id}",
                    "running",
                )
                result = await self._execute_step(workflow, step)
            except Exception as exc:
                step.status = StepStatus.FAILED
                step.error = str(exc)
                workflow.status = StepStatus.FAILED
                workflow.completed_at = utcnow()
                log.warning("workflow_step_failed", step_id=step.id, error=str(exc))
                self._event(
                    workflow,
                    step,
                    MessageType.AGENT,
                    f"Step failed: {step.skill_id} - {exc}",
                    "failed",
                )
                raise

            step.result = result
            step.status = StepStatus.COMPLETED
            results.append(result)
            self._event(
                workflow,
                step,
                MessageType.AGENT,
                f"Step completed: {step.skill_id}",
                "completed",
            )

        workflow.status = StepStatus.COMPLETED
        workflow.completed_at = utcnow()
        log.info("workflow_completed")
        return results

    def _check_dependencies(self, workflow: Workflow, step: WorkflowStep) -> None:
        missing = []
        for dep_id in step.dependencies:
            dep = workflow.step(dep_id)
            if dep is None or dep.status is not StepStatus.COMPLETED or not dep.result:
                missing.append(dep_id)
        if missing:
            raise DependencyError(step.id, missing)

    async def _execute_step(self, workflow: Workflow, step: WorkflowStep) -> Dict[str, Any]:
        if not self._breaker.is_available(step.agent_id):
            raise CircuitOpenError(step.agent_id)

        payload = dict(step.input)
        if step.dependencies:
            payload["dependency_results"] = {
                dep_id: workflow.step(dep_id).result for dep_id in step.dependencies
            }

        try:
            result = await self._client.execute(
                step.agent_id,
                step.skill_id,
                payload,
                timeout=self.step_timeout,
                artifact_name=step.artifact,
            )
        except Exception:
            self._breaker.record_failure(step.agent_id)
            raise
        self._breaker.record_success(step.agent_id)
        return result

    def _event(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        type: MessageType,
        content: str,
        status: str,
    ) -> None:
        self._chat_log.append(
            type,
            content,
            {
                "workflow_id": workflow.id,
                "agent_id": step.agent_id,
                "step_id": step.id,
                "skill_id": step.skill_id,
                "status": status,
            },
        )
