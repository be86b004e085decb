"""Agent selection scoring."""
from __future__ import annotations

from conftest import FRONTEND_URL, MANUAL_URL, QUIZ_URL
from quiz_orchestrator.core.models import AgentStatus
from quiz_orchestrator.discovery.registry import VIRTUAL_MCP_AGENT_URL
from quiz_orchestrator.discovery.selector import AgentSelector, default_profiles


def _selector() -> AgentSelector:
    selector = AgentSelector()
    for profile in default_profiles(QUIZ_URL, FRONTEND_URL, MANUAL_URL, VIRTUAL_MCP_AGENT_URL):
        selector.register(profile)
    return selector


def test_quiz_query_selects_quiz_agent() -> None:
    selection = _selector().select("create a multiple choice quiz about photosynthesis")

    assert selection.agent.id == "backend-quiz-agent"
    assert 0 < selection.confidence <= 1
    assert "Capability match" in selection.reasoning


def test_manual_query_selects_manual_agent() -> None:
    selection = _selector().select("write a handbook and tutorial guide for git")
    assert selection.agent.id == "manual-agent"


def test_offline_agents_are_never_selected() -> None:
    selector = _selector()
    selector.mark(QUIZ_URL, AgentStatus.OFFLINE)

    selection = selector.select("create a quiz")
    assert selection.agent is not None
    assert selection.agent.id != "backend-quiz-agent"


def test_no_online_agents_yields_empty_selection() -> None:
    selector = _selector()
    for profile in selector.get_all():
        profile.status = AgentStatus.OFFLINE

    selection = selector.select("anything")
    assert selection.agent is None
    assert selection.confidence == 0.0
    assert selection.to_dict()["agent"] is None


def test_fallback_agents_ordered_by_reliability() -> None:
    fallbacks = _selector().fallback_agents(exclude_id="backend-quiz-agent")

    assert len(fallbacks) == 3
    assert "backend-quiz-agent" not in [p.id for p in fallbacks]
    reliabilities = [p.reliability for p in fallbacks]
    assert reliabilities == sorted(reliabilities, reverse=True)


def test_best_capability_matches_keywords() -> None:
    selector = _selector()
    frontend = selector.get("frontend-agent")

    assert selector.best_capability(frontend, "render and display the quiz").id in {
        "display_quiz",
        "ui-orchestration",
    }
    assert selector.best_capability(frontend, "zzz") is None


def test_update_metrics_moves_averages() -> None:
    selector = _selector()
    before = selector.get("backend-quiz-agent").reliability

    selector.update_metrics("backend-quiz-agent", False, 4000.0)
    profile = selector.get("backend-quiz-agent")

    assert profile.reliability < before
    assert profile.response_time_ms == 2000.0 * 0.8 + 4000.0 * 0.2
    selector.update_metrics("missing", True, 10.0)


def test_high_urgency_prefers_fast_agents() -> None:
    selector = _selector()
    plain = selector.select("display", None)
    urgent = selector.select("display", {"urgency": "high"})

    assert urgent.agent.id == "frontend-agent"
    assert urgent.confidence >= plain.confidence
