"""Agent selection by weighted capability and performance scoring."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from quiz_orchestrator.core.models import (
    AgentCapability,
    AgentProfile,
    AgentStatus,
    utcnow,
)

CAPABILITY_WEIGHT = 0.4
AVAILABILITY_WEIGHT = 0.2
PERFORMANCE_WEIGHT = 0.2
CONTEXT_WEIGHT = 0.2

STALE_AFTER = timedelta(minutes=5)
MAX_RESPONSE_TIME_MS = 5000.0
MAX_FALLBACKS = 3


@dataclass(slots=True)
class Selection:
    agent: Optional[AgentProfile]
    confidence: float
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent.to_dict() if self.agent else None,
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
        }


class AgentSelector:
    """Pick the best online agent for a free-text query."""

    def __init__(self) -> None:
        self._profiles: Dict[str, AgentProfile] = {}

    def register(self, profile: AgentProfile) -> None:
        self._profiles[profile.id] = profile

    def get(self, agent_id: str) -> Optional[AgentProfile]:
        return self._profiles.get(agent_id)

    def get_all(self) -> List[AgentProfile]:
        return list(self._profiles.values())

    def mark(self, url: str, status: AgentStatus, last_seen: Optional[datetime] = None) -> None:
        """Mirror a discovery result onto every profile served from ``url``."""
        for profile in self._profiles.values():
            if profile.url != url:
                continue
            profile.status = status
            if last_seen is not None:
                profile.last_seen = last_seen

    def select(self, query: str, context: Optional[Dict[str, Any]] = None) -> Selection:
        query_lower = query.lower()
        candidates: List[Tuple[float, str, AgentProfile]] = []

        for profile in self._profiles.values():
            if profile.status is not AgentStatus.ONLINE:
                continue
            score, reasoning = self._score(profile, query_lower, context)
            if score > 0:
                candidates.append((score, reasoning, profile))

        if not candidates:
            return Selection(agent=None, confidence=0.0, reasoning="No suitable agents found")

        # Stable sort keeps registration order on ties.
        candidates.sort(key=lambda c: c[0], reverse=True)
        score, reasoning, profile = candidates[0]
        return Selection(agent=profile, confidence=score, reasoning=reasoning)

    def fallback_agents(self, exclude_id: Optional[str] = None) -> List[AgentProfile]:
        online = [
            p
            for p in self._profiles.values()
            if p.status is AgentStatus.ONLINE and p.id != exclude_id
        ]
        online.sort(key=lambda p: p.reliability, reverse=True)
        return online[:MAX_FALLBACKS]

    def best_capability(self, profile: AgentProfile, query: str) -> Optional[AgentCapability]:
        """Return the capability of ``profile`` whose keywords fit ``query`` best."""
        query_lower = query.lower()
        best: Optional[AgentCapability] = None
        best_score = 0.0
        for capability in profile.capabilities:
            score = _keyword_score(capability, query_lower)
            if score > best_score:
                best, best_score = capability, score
        return best

    def update_metrics(self, agent_id: str, success: bool, response_time_ms: float) -> None:
        profile = self._profiles.get(agent_id)
        if profile is None:
            return
        profile.reliability = profile.reliability * 0.9 + (1.0 if success else 0.0) * 0.1
        profile.response_time_ms = profile.response_time_ms * 0.8 + response_time_ms * 0.2
        profile.last_seen = utcnow()

    def _score(
        self,
        profile: AgentProfile,
        query_lower: str,
        context: Optional[Dict[str, Any]],
    ) -> Tuple[float, str]:
        reasons: List[str] = []
        total = 0.0

        capability = max(
            (_keyword_score(cap, query_lower) for cap in profile.capabilities),
            default=0.0,
        )
        total += capability * CAPABILITY_WEIGHT
        if capability > 0:
            reasons.append(f"Capability match: {capability:.2f}")

        availability = _availability_score(profile)
        total += availability * AVAILABILITY_WEIGHT
        reasons.append(f"Availability: {availability:.2f}")

        performance = _performance_score(profile)
        total += performance * PERFORMANCE_WEIGHT
        reasons.append(f"Performance: {performance:.2f}")

        context_score = _context_score(profile, context)
        total += context_score * CONTEXT_WEIGHT
        if context_score > 0:
            reasons.append(f"Context match: {context_score:.2f}")

        return min(total, 1.0), ", ".join(reasons)


def _keyword_score(capability: AgentCapability, query_lower: str) -> float:
    if not capability.keywords:
        return 0.0
    matches = sum(1 for keyword in capability.keywords if keyword.lower() in query_lower)
    return (matches / len(capability.keywords)) * capability.confidence


def _availability_score(profile: AgentProfile) -> float:
    score = 1.0
    if profile.status is AgentStatus.BUSY:
        score *= 0.7
    if profile.load > 0.8:
        score *= 0.5
    if utcnow() - profile.last_seen > STALE_AFTER:
        score *= 0.8
    return score


def _performance_score(profile: AgentProfile) -> float:
    response = max(0.0, 1.0 - profile.response_time_ms / MAX_RESPONSE_TIME_MS)
    return (response + profile.reliability) / 2


def _context_score(profile: AgentProfile, context: Optional[Dict[str, Any]]) -> float:
    if not context:
        return 0.5
    score = 0.5
    if context.get("urgency") == "high" and profile.response_time_ms < 1000:
        score += 0.3
    if context.get("complexity") == "complex" and len(profile.capabilities) > 3:
        score += 0.2
    return min(score, 1.0)


def default_profiles(
    quiz_agent_url: str,
    frontend_agent_url: str,
    manual_agent_url: str,
    virtual_agent_url: str,
) -> List[AgentProfile]:
    """Profiles for the agents this deployment knows how to talk to."""
    return [
        AgentProfile(
            id="backend-quiz-agent",
            name="Quiz Generation Agent",
            url=quiz_agent_url,
            capabilities=[
                AgentCapability(
                    id="generate-quiz",
                    name="Generate Quiz Questions",
                    description="Creates quiz questions on any topic",
                    keywords=["quiz", "question", "test", "exam", "assessment",
                              "multiple choice", "generate", "create"],
                    confidence=0.95,
                    requirements=["llm-api"],
                ),
                AgentCapability(
                    id="content-analysis",
                    name="Content Analysis",
                    description="Analyzes and processes educational content",
                    keywords=["analyze", "content", "educational", "material", "process"],
                    confidence=0.85,
                ),
            ],
            response_time_ms=2000.0,
            reliability=0.95,
        ),
        AgentProfile(
            id="manual-agent",
            name="Manual Generation Agent",
            url=manual_agent_url,
            capabilities=[
                AgentCapability(
                    id="generate_manual",
                    name="Generate Manual",
                    description="Writes structured study manuals and guides",
                    keywords=["manual", "guide", "handbook", "tutorial", "document", "write"],
                    confidence=0.9,
                    requirements=["llm-api"],
                ),
            ],
            response_time_ms=3000.0,
            reliability=0.9,
        ),
        AgentProfile(
            id="frontend-agent",
            name="Frontend Orchestration Agent",
            url=frontend_agent_url,
            capabilities=[
                AgentCapability(
                    id="ui-orchestration",
                    name="UI Orchestration",
                    description="Manages user interface and workflow coordination",
                    keywords=["workflow", "orchestrate", "coordinate", "manage",
                              "ui", "interface", "display", "render"],
                    confidence=0.9,
                ),
                AgentCapability(
                    id="display_quiz",
                    name="Quiz Display",
                    description="Renders and manages quiz interfaces",
                    keywords=["display", "render", "show", "present", "quiz interface"],
                    confidence=0.88,
                ),
            ],
            response_time_ms=500.0,
            reliability=0.98,
        ),
        AgentProfile(
            id="virtual-mcp-agent",
            name="General MCP Agent",
            url=virtual_agent_url,
            capabilities=[
                AgentCapability(
                    id="general-conversation",
                    name="General Conversation",
                    description="Handles general queries and conversations",
                    keywords=["help", "explain", "general", "conversation", "chat", "assist"],
                    confidence=0.8,
                ),
                AgentCapability(
                    id="information-retrieval",
                    name="Information Retrieval",
                    description="Retrieves and provides information",
                    keywords=["information", "retrieve", "lookup", "search", "find"],
                    confidence=0.75,
                ),
            ],
            response_time_ms=1000.0,
            reliability=0.9,
        ),
    ]
