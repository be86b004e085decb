"""Application runtime composition helpers."""
from __future__ import annotations

import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

import httpx

from quiz_orchestrator.config import Config, config
from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.discovery.registry import VIRTUAL_MCP_AGENT_URL, AgentRegistry
from quiz_orchestrator.discovery.selector import AgentSelector, default_profiles
from quiz_orchestrator.orchestration.engine import WorkflowEngine
from quiz_orchestrator.orchestration.service import OrchestratorService
from quiz_orchestrator.resilience.circuit_breaker import CircuitBreaker
from quiz_orchestrator.services.a2a_client import A2AClient
from quiz_orchestrator.services.chat_assistant import DEFAULT_MODEL, ChatAssistant
from quiz_orchestrator.services.llm_pool import LLMPool


@dataclass
class OrchestratorContext:
    """Every long-lived component of one orchestrator process."""

    config: Config
    chat_log: ChatLog
    breaker: CircuitBreaker
    selector: AgentSelector
    client: A2AClient
    registry: AgentRegistry
    engine: WorkflowEngine
    llm_pool: LLMPool
    assistant: ChatAssistant
    service: OrchestratorService

    async def aclose(self) -> None:
        await self.registry.stop()
        await self.client.aclose()
        await self.llm_pool.aclose()


def build_context(
    settings: Config,
    http: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], float] = time.monotonic,
) -> OrchestratorContext:
    """Wire the components together; ``http`` and ``clock`` are injectable for tests."""
    chat_log = ChatLog(max_messages=settings.chat_log_max_messages)
    breaker = CircuitBreaker(
        failure_threshold=settings.resilience.failure_threshold,
        timeout_seconds=settings.resilience.timeout_seconds,
        success_threshold=settings.resilience.success_threshold,
        clock=clock,
    )

    selector = AgentSelector()
    for profile in default_profiles(
        quiz_agent_url=settings.endpoints.quiz_agent_url,
        frontend_agent_url=settings.endpoints.frontend_agent_url,
        manual_agent_url=settings.endpoints.manual_agent_url,
        virtual_agent_url=VIRTUAL_MCP_AGENT_URL,
    ):
        selector.register(profile)

    client = A2AClient(
        http,
        poll_interval=settings.workflow.task_poll_interval,
        max_poll_attempts=settings.workflow.task_poll_max_attempts,
    )
    registry = AgentRegistry(
        client=client,
        chat_log=chat_log,
        agent_urls=[
            *settings.discovery.agent_urls,
            settings.endpoints.frontend_agent_url,
            settings.endpoints.quiz_agent_url,
            settings.endpoints.manual_agent_url,
        ],
        selector=selector,
        probe_timeout=settings.discovery.probe_timeout,
        health_timeout=settings.discovery.health_timeout,
        interval_seconds=settings.discovery.interval_seconds,
    )
    engine = WorkflowEngine(
        client=client,
        breaker=breaker,
        chat_log=chat_log,
        step_timeout=settings.workflow.step_timeout,
    )

    llm_pool = LLMPool()
    if settings.llm:
        llm_pool.register(DEFAULT_MODEL, settings.llm)
    assistant = ChatAssistant(llm_pool, DEFAULT_MODEL)

    service = OrchestratorService(
        registry=registry,
        selector=selector,
        breaker=breaker,
        engine=engine,
        chat_log=chat_log,
        client=client,
        assistant=assistant,
        endpoints=settings.endpoints,
        resilience=settings.resilience,
        step_timeout=settings.workflow.step_timeout,
    )
    return OrchestratorContext(
        config=settings,
        chat_log=chat_log,
        breaker=breaker,
        selector=selector,
        client=client,
        registry=registry,
        engine=engine,
        llm_pool=llm_pool,
        assistant=assistant,
        service=service,
    )


@lru_cache
def get_context() -> OrchestratorContext:
    return build_context(config)


def get_service() -> OrchestratorService:
    return get_context().service


def get_chat_assistant() -> ChatAssistant:
    return get_context().assistant
