"""Core data models shared across orchestrator components."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AgentStatus(str, Enum):
    """Best-effort liveness of a sibling agent."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"
    BUSY = "busy"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class MessageType(str, Enum):
    USER = "user"
    ORCHESTRATOR = "orchestrator"
    AGENT = "agent"
    SYSTEM = "system"


@dataclass(slots=True)
class AgentInfo:
    """Registry entry for a known agent, keyed by its base URL."""

    url: str
    name: str
    skills: List[str] = field(default_factory=list)
    status: AgentStatus = AgentStatus.UNKNOWN
    last_seen: Optional[datetime] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)
    virtual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "skills": list(self.skills),
            "status": self.status.value,
            "last_seen": _iso(self.last_seen),
            "capabilities": self.capabilities,
            "virtual": self.virtual,
        }


@dataclass(slots=True)
class WorkflowStep:
    """A single agent invocation owned by a workflow."""

    id: str
    agent_id: str
    skill_id: str
    input: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    status: StepStatus = StepStatus.PENDING
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    # Name of the task artifact that carries the result, when the agent answers with a task.
    artifact: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "skill_id": self.skill_id,
            "input": self.input,
            "dependencies": list(self.dependencies),
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
        }


@dataclass(slots=True)
class Workflow:
    """One ordered execution of dependent steps for a single request."""

    id: str
    name: str
    kind: str
    steps: List[WorkflowStep]
    status: StepStatus = StepStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.id == step_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "steps": [step.to_dict() for step in self.steps],
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }


@dataclass(slots=True)
class CircuitBreakerState:
    """Per-agent breaker bookkeeping."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    # Monotonic clock reading used for timeout arithmetic.
    last_failure_time: Optional[float] = None
    last_failure_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_at": _iso(self.last_failure_at),
        }


@dataclass(slots=True)
class ChatMessage:
    """Timestamped orchestration event shown in the chat UI."""

    id: str
    type: MessageType
    content: str
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def workflow_id(self) -> Optional[str]:
        return self.metadata.get("workflow_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "timestamp": _iso(self.timestamp),
            "metadata": dict(self.metadata),
        }


@dataclass(slots=True)
class AgentCapability:
    id: str
    name: str
    description: str
    keywords: List[str]
    confidence: float
    requirements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
            "confidence": self.confidence,
            "requirements": list(self.requirements),
        }


@dataclass(slots=True)
class AgentProfile:
    """Selector view of an agent: capabilities plus running performance figures."""

    id: str
    name: str
    url: str
    capabilities: List[AgentCapability]
    status: AgentStatus = AgentStatus.ONLINE
    load: float = 0.0
    response_time_ms: float = 1000.0
    reliability: float = 0.9
    last_seen: datetime = field(default_factory=utcnow)

    @property
    def virtual(self) -> bool:
        return self.url.startswith("virtual://")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "capabilities": [cap.to_dict() for cap in self.capabilities],
            "status": self.status.value,
            "load": self.load,
            "response_time_ms": round(self.response_time_ms, 2),
            "reliability": round(self.reliability, 4),
            "last_seen": _iso(self.last_seen),
        }
