"""Agent registry populated by periodic discovery probes."""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import httpx
import structlog

from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.core.models import AgentInfo, AgentStatus, MessageType, utcnow
from quiz_orchestrator.discovery.selector import AgentSelector
from quiz_orchestrator.errors import OrchestratorError
from quiz_orchestrator.services.a2a_client import A2AClient

logger = structlog.get_logger(__name__)

VIRTUAL_MCP_AGENT_URL = "virtual://normal-mcp-agent"


def _virtual_mcp_agent() -> AgentInfo:
    return AgentInfo(
        url=VIRTUAL_MCP_AGENT_URL,
        name="General MCP Agent",
        skills=["general-conversation", "information-retrieval", "task-assistance"],
        status=AgentStatus.ONLINE,
        last_seen=utcnow(),
        capabilities={
            "description": "Handles general queries, conversations, and non-quiz related tasks",
            "type": "virtual",
        },
        virtual=True,
    )


class AgentRegistry:
    """Best-effort liveness and capability map for a fixed set of agent URLs."""

    def __init__(
        self,
        *,
        client: A2AClient,
        chat_log: ChatLog,
        agent_urls: Iterable[str],
        selector: Optional[AgentSelector] = None,
        probe_timeout: float = 5.0,
        health_timeout: float = 3.0,
        interval_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._chat_log = chat_log
        self._selector = selector
        self.known_urls: List[str] = list(dict.fromkeys(agent_urls))
        self.probe_timeout = probe_timeout
        self.health_timeout = health_timeout
        self.interval_seconds = interval_seconds
        self._agents: Dict[str, AgentInfo] = {
            url: AgentInfo(url=url, name=f"Agent-{url.rsplit(':', 1)[-1]}")
            for url in self.known_urls
        }
        virtual = _virtual_mcp_agent()
        self._agents[virtual.url] = virtual
        self.last_discovery_at: Optional[datetime] = None
        self._runner: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()

    def get_all(self) -> List[AgentInfo]:
        return list(self._agents.values())

    def get(self, url: str) -> Optional[AgentInfo]:
        return self._agents.get(url)

    def get_by_capability(self, tag: str) -> List[AgentInfo]:
        return [agent for agent in self._agents.values() if tag in agent.skills]

    async def discover(self) -> Dict[str, Any]:
        """Probe every known URL once and report what answered."""
        logger.info("agent_discovery_started", urls=len(self.known_urls))
        probed = await asyncio.gather(*(self._probe(url) for url in self.known_urls))

        self.last_discovery_at = utcnow()
        online = sum(1 for agent in probed if agent.status is AgentStatus.ONLINE)
        logger.info("agent_discovery_completed", online=online, total=len(probed))
        return {
            "agents": [agent.to_dict() for agent in probed],
            "count": len(probed),
            "online_count": online,
            "offline_count": sum(1 for a in probed if a.status is AgentStatus.OFFLINE),
            "timestamp": utcnow().isoformat(),
        }

    async def check_health(self, url: str) -> Dict[str, Any]:
        agent = self._agents.get(url)
        name = agent.name if agent else url
        try:
            response = await self._client.check_health(url, timeout=self.health_timeout)
        except httpx.HTTPError as exc:
            return {"agent": name, "url": url, "status": "unhealthy", "error": str(exc) or repr(exc)}
        return {
            "agent": name,
            "url": url,
            "status": "healthy",
            "response_time": response.headers.get("x-response-time", "unknown"),
        }

    async def start(self) -> None:
        """Run discovery now and then every ``interval_seconds`` in the background."""
        if self._runner is not None:
            return
        self._stop_event.clear()
        self._runner = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._runner is None:
            return
        self._stop_event.set()
        await self._runner
        self._runner = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.discover()
            except Exception:  # noqa: BLE001
                logger.exception("agent_discovery_pass_failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    async def _probe(self, url: str) -> AgentInfo:
        try:
            card = await self._client.fetch_agent_card(url, timeout=self.probe_timeout)
        except (httpx.HTTPError, OrchestratorError, ValueError) as exc:
            return self._mark_offline(url, exc)

        agent = AgentInfo(
            url=url,
            name=card.get("name") or f"Agent-{url.rsplit(':', 1)[-1]}",
            skills=[
                skill["id"]
                for skill in card.get("skills") or []
                if isinstance(skill, dict) and "id" in skill
            ],
            status=AgentStatus.ONLINE,
            last_seen=utcnow(),
            capabilities=card.get("capabilities") or {},
        )
        self._agents[url] = agent
        if self._selector is not None:
            self._selector.mark(url, agent.status, agent.last_seen)

        logger.info("agent_discovered", agent_url=url, name=agent.name, skills=len(agent.skills))
        self._chat_log.append(
            MessageType.SYSTEM,
            f"Discovered agent: {agent.name} at {url} with {len(agent.skills)} skills",
            {"agent_id": url, "skill_id": ",".join(agent.skills), "status": "discovered"},
        )
        return agent

    def _mark_offline(self, url: str, exc: Exception) -> AgentInfo:
        agent = self._agents.get(url) or AgentInfo(url=url, name=f"Unknown Agent ({url})")
        agent.status = AgentStatus.OFFLINE
        self._agents[url] = agent
        if self._selector is not None:
            self._selector.mark(url, agent.status)

        reason = str(exc) or type(exc).__name__
        logger.warning("agent_discovery_failed", agent_url=url, error=reason)
        self._chat_log.append(
            MessageType.SYSTEM,
            f"Failed to discover agent at {url}: {reason}",
            {"agent_id": url, "status": "offline"},
        )
        return agent
