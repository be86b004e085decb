"""Orchestrator facade: the operations exposed at the HTTP boundary."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import structlog

from quiz_orchestrator.config import AgentEndpoints, ResilienceConfig
from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.core.models import (
    AgentProfile,
    AgentStatus,
    CircuitState,
    MessageType,
    WorkflowStep,
    utcnow,
)
from quiz_orchestrator.discovery.registry import AgentRegistry
from quiz_orchestrator.discovery.selector import AgentSelector
from quiz_orchestrator.errors import (
    LLMError,
    NotFoundError,
    OrchestratorError,
    ProtocolError,
)
from quiz_orchestrator.orchestration import fallback
from quiz_orchestrator.orchestration.engine import WorkflowEngine
from quiz_orchestrator.resilience.circuit_breaker import CircuitBreaker
from quiz_orchestrator.services.a2a_client import A2AClient
from quiz_orchestrator.services.chat_assistant import ChatAssistant

logger = structlog.get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _extract_questions(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Find the question list in a quiz agent result, wherever it nests it."""
    candidates = [result, result.get("data"), result.get("quiz")]
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        for key in ("quiz_questions", "questions"):
            questions = candidate.get(key)
            if isinstance(questions, list) and questions:
                return questions
    raise ProtocolError("Quiz agent result contains no questions")


class OrchestratorService:
    """Coordinates discovery, selection, resilience and workflows for one process."""

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        selector: AgentSelector,
        breaker: CircuitBreaker,
        engine: WorkflowEngine,
        chat_log: ChatLog,
        client: A2AClient,
        assistant: ChatAssistant,
        endpoints: AgentEndpoints,
        resilience: ResilienceConfig,
        step_timeout: float = 30.0,
    ) -> None:
        self.registry = registry
        self.selector = selector
        self.breaker = breaker
        self.engine = engine
        self.chat_log = chat_log
        self._client = client
        self._assistant = assistant
        self._endpoints = endpoints
        self._resilience = resilience
        self._step_timeout = step_timeout
        self._started = time.monotonic()

    # -- registry ---------------------------------------------------------

    async def discover_agents(self) -> Dict[str, Any]:
        return await self.registry.discover()

    def get_agents(self) -> List[Dict[str, Any]]:
        return [agent.to_dict() for agent in self.registry.get_all()]

    def get_agent(self, url: str) -> Dict[str, Any]:
        agent = self.registry.get(url)
        if agent is None:
            raise NotFoundError(f"Agent {url} not found")
        return agent.to_dict()

    # -- chat log ---------------------------------------------------------

    def get_chat_history(self) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self.chat_log.get_all()]

    def get_workflow_chat_history(self, workflow_id: str) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self.chat_log.get_by_workflow(workflow_id)]

    def clear_chat_history(self) -> Dict[str, Any]:
        self.chat_log.clear()
        return {"success": True}

    # -- workflows --------------------------------------------------------

    def get_workflows(self) -> List[Dict[str, Any]]:
        return [workflow.to_dict() for workflow in self.engine.get_all()]

    def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        workflow = self.engine.get(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return workflow.to_dict()

    async def orchestrate_quiz_workflow(
        self,
        topic: str,
        difficulty: str = "intermediate",
        question_count: int = 5,
    ) -> Dict[str, Any]:
        """Generate a quiz through the quiz and frontend agents.

        When any step fails the response carries a locally generated quiz
        with ``fallback_used`` set, next to the real (failed) workflow status.
        """
        workflow = self.engine.create(
            name=f"Quiz Generation: {topic}",
            kind="quiz",
            steps=[
                WorkflowStep(
                    id="step_1",
                    agent_id=self._endpoints.quiz_agent_url,
                    skill_id="generate-quiz",
                    input={
                        "topic": topic,
                        "difficulty": difficulty,
                        "question_count": question_count,
                    },
                    artifact="quiz.json",
                ),
                WorkflowStep(
                    id="step_2",
                    agent_id=self._endpoints.frontend_agent_url,
                    skill_id="display_quiz",
                    dependencies=["step_1"],
                ),
            ],
        )
        self.chat_log.append(
            MessageType.ORCHESTRATOR,
            f'Starting quiz workflow for topic: "{topic}"',
            {"workflow_id": workflow.id, "status": "starting"},
        )

        try:
            results = await self.engine.run(workflow)
            questions = _extract_questions(results[0])
        except OrchestratorError as exc:
            quiz = fallback.mock_quiz(topic, question_count)
            logger.warning(
                "quiz_workflow_fallback", workflow_id=workflow.id, error=exc.message
            )
            self.chat_log.append(
                MessageType.ORCHESTRATOR,
                f"Workflow failed: {exc.message}. Returning {question_count} "
                "locally generated questions instead.",
                {"workflow_id": workflow.id, "status": "fallback"},
            )
            return self._workflow_response(
                workflow,
                fallback_used=True,
                error=exc.message,
                result={
                    "message": f"Generated {question_count} fallback questions for {topic}",
                    "quiz_questions": quiz["quiz_questions"],
                },
            )

        self.chat_log.append(
            MessageType.ORCHESTRATOR,
            f"Quiz workflow completed successfully! Generated {len(questions)} questions.",
            {"workflow_id": workflow.id, "status": "completed"},
        )
        return self._workflow_response(
            workflow,
            fallback_used=False,
            result={
                "message": f"Generated {len(questions)} questions for {topic}",
                "quiz_questions": questions,
                "steps": results,
            },
        )

    async def orchestrate_manual_workflow(self, topic: str, prompt: str = "") -> Dict[str, Any]:
        workflow = self.engine.create(
            name=f"Manual Generation: {topic}",
            kind="manual",
            steps=[
                WorkflowStep(
                    id="step_1",
                    agent_id=self._endpoints.manual_agent_url,
                    skill_id="generate_manual",
                    input={"topic": topic, "prompt": prompt},
                    artifact="manual.json",
                ),
            ],
        )
        self.chat_log.append(
            MessageType.ORCHESTRATOR,
            f'Starting manual workflow for topic: "{topic}"',
            {"workflow_id": workflow.id, "status": "starting"},
        )

        try:
            results = await self.engine.run(workflow)
        except OrchestratorError as exc:
            logger.warning(
                "manual_workflow_fallback", workflow_id=workflow.id, error=exc.message
            )
            self.chat_log.append(
                MessageType.ORCHESTRATOR,
                f"Workflow failed: {exc.message}. Returning a locally generated manual instead.",
                {"workflow_id": workflow.id, "status": "fallback"},
            )
            return self._workflow_response(
                workflow,
                fallback_used=True,
                error=exc.message,
                result={
                    "message": f"Generated fallback manual for {topic}",
                    "manual": fallback.mock_manual(topic, prompt),
                },
            )

        manual = results[0]
        self.chat_log.append(
            MessageType.ORCHESTRATOR,
            f"Manual workflow completed successfully for topic: {topic}",
            {"workflow_id": workflow.id, "status": "completed"},
        )
        return self._workflow_response(
            workflow,
            fallback_used=False,
            result={
                "message": f"Manual generated for {topic}",
                "manual": manual.get("data", manual),
            },
        )

    @staticmethod
    def _workflow_response(
        workflow,
        *,
        fallback_used: bool,
        result: Dict[str, Any],
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "workflow_id": workflow.id,
            "status": workflow.status.value,
            "fallback_used": fallback_used,
            "result": result,
            "error": error,
            "timestamp": utcnow().isoformat(),
        }

    # -- health -----------------------------------------------------------

    async def monitor_system_health(self) -> Dict[str, Any]:
        """Report per-agent health; agents discovery has not reached yet are probed now."""
        checks: List[Dict[str, Any]] = []
        profiles = self.selector.get_all()
        covered = {profile.url for profile in profiles}

        unreconciled = [
            profile.url
            for profile in profiles
            if not profile.virtual and not self._reconciled(profile.url)
        ]
        uncovered = [
            agent.url
            for agent in self.registry.get_all()
            if agent.url not in covered and not agent.virtual
        ]
        to_probe = list(dict.fromkeys(unreconciled + uncovered))
        probes = {
            probe["url"]: probe
            for probe in await asyncio.gather(
                *(self.registry.check_health(url) for url in to_probe)
            )
        }

        for profile in profiles:
            breaker = self.breaker.get_status(profile.url)
            probe = probes.get(profile.url)
            if probe is not None:
                reachable = probe["status"] == "healthy"
            else:
                reachable = profile.status is AgentStatus.ONLINE
            healthy = reachable and (breaker is None or breaker.state is not CircuitState.OPEN)
            check = {
                "agent": profile.name,
                "url": profile.url,
                "status": "healthy" if healthy else "unhealthy",
                "agent_status": profile.status.value,
                "load": profile.load,
                "reliability": round(profile.reliability, 4),
                "response_time_ms": round(profile.response_time_ms, 2),
                "circuit_breaker": breaker.to_dict() if breaker else None,
                "last_seen": profile.last_seen.isoformat(),
            }
            if probe is not None:
                check["health_probe"] = probe["status"]
            checks.append(check)

        for url in uncovered:
            probe = probes[url]
            breaker = self.breaker.get_status(url)
            probe["circuit_breaker"] = breaker.to_dict() if breaker else None
            checks.append(probe)

        overall = "healthy" if all(c["status"] == "healthy" for c in checks) else "degraded"
        online = [p for p in profiles if p.status is AgentStatus.ONLINE]
        return {
            "overall_health": overall,
            "agents": checks,
            "circuit_breakers": {
                agent_id: state.to_dict()
                for agent_id, state in self.breaker.get_all_states().items()
            },
            "enhanced_metrics": {
                "total_agents": len(profiles),
                "online_agents": len(online),
                "average_reliability": (
                    sum(p.reliability for p in profiles) / len(profiles) if profiles else 0.0
                ),
                "average_response_time_ms": (
                    sum(p.response_time_ms for p in profiles) / len(profiles) if profiles else 0.0
                ),
            },
            "timestamp": utcnow().isoformat(),
        }

    def _reconciled(self, url: str) -> bool:
        agent = self.registry.get(url)
        return agent is not None and agent.status is not AgentStatus.UNKNOWN

    def status(self) -> Dict[str, Any]:
        agents = self.registry.get_all()
        last = self.registry.last_discovery_at
        return {
            "orchestrator": {
                "status": "running",
                "uptime_seconds": round(time.monotonic() - self._started, 3),
            },
            "agents": {
                "discovered": len(agents),
                "active": sum(1 for a in agents if a.status is AgentStatus.ONLINE),
                "last_discovery": last.isoformat() if last else None,
            },
        }

    # -- agent selection --------------------------------------------------

    def determine_agent_for_query(
        self, query: str, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        selection = self.selector.select(query, context)
        name = selection.agent.name if selection.agent else "None"
        self.chat_log.append(
            MessageType.SYSTEM,
            f"Agent selection: {name} (confidence: {selection.confidence:.2f}, "
            f"reasoning: {selection.reasoning})",
            {
                "agent_id": selection.agent.id if selection.agent else None,
                "status": "selection_complete",
            },
        )
        return selection.to_dict()

    async def execute_agent_with_resilience(
        self, query: str, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Run ``query`` on the best agent, retrying and then trying fallbacks."""
        start = time.perf_counter()
        selection = self.selector.select(query, context)
        selection_ms = _elapsed_ms(start)
        agent = selection.agent

        if agent is None:
            return self._resilience_result(
                start, selection_ms, success=False, error="No suitable agent found"
            )

        if not self.breaker.is_available(agent.url):
            logger.warning("agent_circuit_open", agent_id=agent.id, agent_url=agent.url)
            return await self._try_fallbacks(query, context, agent.id, start, selection_ms)

        exec_start = time.perf_counter()
        try:
            result = await self._execute_with_retry(agent, query, context)
        except OrchestratorError as exc:
            self.breaker.record_failure(agent.url)
            self.selector.update_metrics(agent.id, False, _elapsed_ms(exec_start))
            logger.warning("agent_execution_failed", agent_id=agent.id, error=exc.message)
            return await self._try_fallbacks(query, context, agent.id, start, selection_ms)

        execution_ms = _elapsed_ms(exec_start)
        self.breaker.record_success(agent.url)
        self.selector.update_metrics(agent.id, True, execution_ms)
        return self._resilience_result(
            start, selection_ms, success=True, agent=agent, result=result, execution_ms=execution_ms
        )

    async def _execute_with_retry(
        self, agent: AgentProfile, query: str, context: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        attempts = max(1, self._resilience.retry_attempts)
        for attempt in range(1, attempts):
            try:
                return await self._attempt(agent, query, context)
            except OrchestratorError as exc:
                logger.warning(
                    "agent_attempt_failed", agent_id=agent.id, attempt=attempt, error=exc.message
                )
                await asyncio.sleep(self._resilience.retry_backoff_seconds * 2 ** attempt)
        return await self._attempt(agent, query, context)

    async def _attempt(
        self, agent: AgentProfile, query: str, context: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if agent.virtual:
            return await self.handle_general_mcp_query(query, context)
        capability = self.selector.best_capability(agent, query) or agent.capabilities[0]
        return await self._client.execute(
            agent.url,
            capability.id,
            {"query": query, "context": context or {}},
            timeout=self._step_timeout,
        )

    async def _try_fallbacks(
        self,
        query: str,
        context: Optional[Dict[str, Any]],
        exclude_id: str,
        start: float,
        selection_ms: float,
    ) -> Dict[str, Any]:
        for agent in self.selector.fallback_agents(exclude_id):
            if not self.breaker.is_available(agent.url):
                continue
            exec_start = time.perf_counter()
            try:
                result = await self._execute_with_retry(agent, query, context)
            except OrchestratorError as exc:
                self.breaker.record_failure(agent.url)
                self.selector.update_metrics(agent.id, False, _elapsed_ms(exec_start))
                logger.warning("fallback_agent_failed", agent_id=agent.id, error=exc.message)
                continue

            execution_ms = _elapsed_ms(exec_start)
            self.breaker.record_success(agent.url)
            self.selector.update_metrics(agent.id, True, execution_ms)
            return self._resilience_result(
                start,
                selection_ms,
                success=True,
                agent=agent,
                result=result,
                execution_ms=execution_ms,
                fallback_used=True,
            )

        return self._resilience_result(
            start, selection_ms, success=False, error="All agents failed, including fallbacks"
        )

    @staticmethod
    def _resilience_result(
        start: float,
        selection_ms: float,
        *,
        success: bool,
        agent: Optional[AgentProfile] = None,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        execution_ms: float = 0.0,
        fallback_used: bool = False,
    ) -> Dict[str, Any]:
        return {
            "success": success,
            "agent": agent.to_dict() if agent else None,
            "result": result,
            "error": error,
            "fallback_used": fallback_used,
            "metrics": {
                "selection_time_ms": selection_ms,
                "execution_time_ms": execution_ms,
                "total_time_ms": _elapsed_ms(start),
            },
        }

    # -- general queries --------------------------------------------------

    async def handle_general_mcp_query(
        self, query: str, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        context = context or {}
        self.chat_log.append(MessageType.USER, query, {"status": "processing"})

        response: Optional[str] = None
        source = "template"
        agent_id = "quiz-agent"
        if self._assistant.configured:
            try:
                reply = await self._assistant.respond(query, context.get("history"))
            except LLMError as exc:
                logger.warning("general_query_llm_failed", error=exc.message)
            else:
                response, source = reply["content"], "llm"

        if response is None:
            agent_id, response = template_response(query, context.get("chatMode", "quiz"))

        self.chat_log.append(
            MessageType.AGENT,
            response,
            {"agent_id": agent_id, "status": "completed"},
        )
        return {
            "success": True,
            "response": response,
            "source": source,
            "agent": {"id": agent_id, "name": "Quiz Agent"},
            "timestamp": utcnow().isoformat(),
        }


_TOPIC_SUGGESTIONS = {
    "science": (
        "Perfect! I can create science quizzes on any topic, for example:\n"
        "- \"Create a quiz about the solar system and planets\"\n"
        "- \"Make a biology quiz about human anatomy\"\n"
        "- \"Generate a chemistry quiz about the periodic table\"\n\n"
        "What specific science topic interests you?"
    ),
    "history": (
        "Excellent choice! I can create history quizzes covering any period, for example:\n"
        "- \"Create a quiz about World War II\"\n"
        "- \"Make a quiz about ancient Egypt\"\n"
        "- \"Generate a quiz about the Renaissance\"\n\n"
        "What historical period or event would you like to focus on?"
    ),
    "math": (
        "Math quizzes are my specialty! For example:\n"
        "- \"Create a quiz about algebra and equations\"\n"
        "- \"Make a geometry quiz about shapes and angles\"\n"
        "- \"Create a statistics quiz about probability\"\n\n"
        "What level and type of math problems would you like?"
    ),
    "general knowledge": (
        "General knowledge quizzes are fun! For example:\n"
        "- \"Create a quiz about world capitals\"\n"
        "- \"Make a quiz about famous landmarks\"\n"
        "- \"Create a quiz about technology and inventions\"\n\n"
        "What area of general knowledge would you like to test?"
    ),
}


def template_response(query: str, chat_mode: str = "quiz") -> tuple:
    """Canned quiz-assistant answer used when no LLM is available.

    Returns ``(agent_id, text)``.
    """
    lower = query.lower()

    if chat_mode == "quiz" or "quiz" in lower or "question" in lower:
        if "create quiz" in lower:
            return "quiz-agent", (
                "Great! I'd love to help you create a quiz. What topic would you like it to cover?\n"
                "Try \"Create a quiz about the solar system\" or "
                "\"Make a science quiz about photosynthesis\"."
            )
        for keyword, text in _TOPIC_SUGGESTIONS.items():
            if keyword in lower:
                return "quiz-agent", text
        return "quiz-agent", (
            "I'm your Quiz Agent! I can help you create quizzes on any topic.\n"
            "Type \"Create a quiz about [your topic]\" or paste content and ask me to "
            "make a quiz from it. What would you like to quiz about?"
        )

    if any(word in lower for word in ("help", "plan", "explain")):
        return "quiz-agent", (
            "I can help you plan and design quizzes even when the generation service is "
            "unavailable: choosing topics, suggesting question formats, and reviewing "
            "quiz concepts. How can I assist you with quiz planning today?"
        )

    return "normal-mcp-agent", (
        f'I\'m your Quiz Agent, but I can also help with general questions! You asked: "{query}".\n'
        "How can I help you today?"
    )
