"""Self-description routes: liveness and this orchestrator's agent card."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from quiz_orchestrator.config import SERVICE_VERSION
from quiz_orchestrator.core.models import utcnow
from quiz_orchestrator.services.a2a_client import AGENT_CARD_PATH

router = APIRouter(tags=["well-known"])

_SKILLS = [
    {
        "id": "orchestrate_quiz_workflow",
        "name": "Orchestrate Quiz Workflow",
        "description": "Generates a quiz with the quiz agent and hands it to the frontend agent",
        "tags": ["quiz", "orchestration", "workflow"],
    },
    {
        "id": "orchestrate_manual_workflow",
        "name": "Orchestrate Manual Workflow",
        "description": "Generates a study manual with the manual agent",
        "tags": ["manual", "orchestration", "workflow"],
    },
    {
        "id": "discover_agents",
        "name": "Discover Agents",
        "description": "Probes known agent URLs and reports which are online",
        "tags": ["discovery", "registry"],
    },
    {
        "id": "monitor_system_health",
        "name": "Monitor System Health",
        "description": "Reports agent health, performance and circuit breaker state",
        "tags": ["health", "monitoring"],
    },
]


def agent_card(base_url: str) -> Dict[str, Any]:
    base_url = base_url.rstrip("/")
    return {
        "name": "Quiz Orchestrator Agent",
        "description": (
            "Coordinates quiz and manual generation across sibling agents, "
            "with discovery, agent selection and circuit breaking."
        ),
        "protocolVersion": "0.3.0",
        "url": base_url,
        "version": SERVICE_VERSION,
        "capabilities": {
            "streaming": False,
            "pushNotifications": False,
            "stateTransitionHistory": True,
        },
        "defaultInputModes": ["application/json"],
        "defaultOutputModes": ["application/json"],
        "skills": [
            {
                **skill,
                "action": "/api/orchestrator",
                "inputModes": ["application/json"],
                "outputModes": ["application/json"],
            }
            for skill in _SKILLS
        ],
    }


@router.get(AGENT_CARD_PATH)
async def get_agent_card(request: Request) -> Dict[str, Any]:
    return agent_card(str(request.base_url))


@router.get("/health")
async def health() -> dict:
    return {
        "status": "ok",
        "agent": "quiz-orchestrator",
        "version": SERVICE_VERSION,
        "timestamp": utcnow().isoformat(),
    }
