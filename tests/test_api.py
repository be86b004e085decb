"""HTTP surface of the orchestrator."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import QUIZ_URL, mock_http, unreachable
from quiz_orchestrator.main import app
from quiz_orchestrator.runtime import build_context, get_service


@pytest.fixture
def context(settings, clock):
    return build_context(settings, http=mock_http(unreachable), clock=clock)


@pytest.fixture
def client(context):
    app.dependency_overrides[get_service] = lambda: context.service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_unknown_action_is_rejected(client) -> None:
    response = client.post("/api/orchestrator", json={"action": "unknown_action"})

    assert response.status_code == 400
    assert "Unknown action" in response.json()["error"]


def test_missing_action_is_rejected(client) -> None:
    response = client.post("/api/orchestrator", json={"topic": "Cells"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Unknown action")


def test_non_object_body_is_rejected(client) -> None:
    response = client.post("/api/orchestrator", json=["discover_agents"])
    assert response.status_code == 400


def test_invalid_fields_are_rejected(client) -> None:
    response = client.post(
        "/api/orchestrator",
        json={"action": "orchestrate_quiz_workflow", "topic": "Cells", "question_count": 0},
    )

    assert response.status_code == 400
    assert "question_count" in response.json()["error"]


def test_clear_then_get_chat_history(client) -> None:
    client.post("/api/orchestrator", json={"action": "determine_agent_for_query", "query": "make a quiz"})

    cleared = client.post("/api/orchestrator", json={"action": "clear_chat_history"})
    history = client.post("/api/orchestrator", json={"action": "get_chat_history"})

    assert cleared.json() == {"success": True}
    assert history.status_code == 200
    assert history.json() == []


def test_quiz_workflow_with_unreachable_agents(client) -> None:
    response = client.post(
        "/api/orchestrator",
        json={"action": "orchestrate_quiz_workflow", "topic": "Photosynthesis", "question_count": 5},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["fallback_used"] is True
    assert body["status"] == "failed"
    questions = body["result"]["quiz_questions"]
    assert len(questions) == 5
    for question in questions:
        assert question["question"]
        letters = "ABCD"[: len(question["answers"])]
        assert question["correct_answer"] in letters

    workflow_id = body["workflow_id"]
    by_camel = client.post("/api/orchestrator", json={"action": "get_workflow", "workflowId": workflow_id})
    by_snake = client.post(
        "/api/orchestrator",
        json={"action": "get_workflow_chat_history", "workflow_id": workflow_id},
    )
    assert by_camel.json()["id"] == workflow_id
    assert by_snake.json()


def test_missing_workflow_is_not_found(client) -> None:
    response = client.post("/api/orchestrator", json={"action": "get_workflow", "workflowId": "nope"})

    assert response.status_code == 404
    assert "nope" in response.json()["error"]


def test_get_agent(client) -> None:
    found = client.post("/api/orchestrator", json={"action": "get_agent", "url": QUIZ_URL})
    missing = client.post("/api/orchestrator", json={"action": "get_agent", "url": "http://nowhere"})

    assert found.json()["url"] == QUIZ_URL
    assert missing.status_code == 404


def test_discover_agents_action(client) -> None:
    response = client.post("/api/orchestrator", json={"action": "discover_agents"})

    assert response.status_code == 200
    assert response.json()["offline_count"] == 4


def test_unexpected_errors_become_500() -> None:
    class Broken:
        def get_workflows(self):
            raise RuntimeError("storage exploded")

    app.dependency_overrides[get_service] = lambda: Broken()
    try:
        response = TestClient(app).post("/api/orchestrator", json={"action": "get_workflows"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "storage exploded"}


def test_get_queries(client) -> None:
    assert client.get("/api/orchestrator", params={"action": "health"}).json()["status"] == "ok"
    status = client.get("/api/orchestrator", params={"action": "status"}).json()
    assert status["orchestrator"]["status"] == "running"
    assert isinstance(client.get("/api/orchestrator", params={"action": "agents"}).json(), list)

    unknown = client.get("/api/orchestrator", params={"action": "bogus"})
    assert unknown.status_code == 400
    assert unknown.json() == {"error": "Unknown action: bogus"}


def test_health_and_agent_card(client) -> None:
    assert client.get("/health").json()["status"] == "ok"

    card = client.get("/.well-known/agent-card.json").json()
    assert card["name"] == "Quiz Orchestrator Agent"
    assert {skill["id"] for skill in card["skills"]} >= {"orchestrate_quiz_workflow"}
