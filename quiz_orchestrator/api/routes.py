"""HTTP API exposing orchestrator capabilities."""
from __future__ import annotations

import inspect
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Optional, Union

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from quiz_orchestrator.config import SERVICE_VERSION
from quiz_orchestrator.errors import OrchestratorError, RequestError, UnknownActionError
from quiz_orchestrator.orchestration.service import OrchestratorService
from quiz_orchestrator.runtime import get_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orchestrator", tags=["orchestrator"])

_WORKFLOW_ID = AliasChoices("workflowId", "workflow_id")


class _ActionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DiscoverAgentsRequest(_ActionRequest):
    action: Literal["discover_agents"]


class QuizWorkflowRequest(_ActionRequest):
    action: Literal["orchestrate_quiz_workflow"]
    topic: str = Field(..., min_length=1)
    difficulty: str = "intermediate"
    question_count: int = Field(
        5, ge=1, le=50, validation_alias=AliasChoices("question_count", "questionCount")
    )


class ManualWorkflowRequest(_ActionRequest):
    action: Literal["orchestrate_manual_workflow"]
    topic: str = Field(..., min_length=1)
    prompt: str = ""


class SystemHealthRequest(_ActionRequest):
    action: Literal["monitor_system_health"]


class ChatHistoryRequest(_ActionRequest):
    action: Literal["get_chat_history"]


class WorkflowChatHistoryRequest(_ActionRequest):
    action: Literal["get_workflow_chat_history"]
    workflow_id: str = Field(..., validation_alias=_WORKFLOW_ID)


class ClearChatHistoryRequest(_ActionRequest):
    action: Literal["clear_chat_history"]


class WorkflowsRequest(_ActionRequest):
    action: Literal["get_workflows"]


class WorkflowRequest(_ActionRequest):
    action: Literal["get_workflow"]
    workflow_id: str = Field(..., validation_alias=_WORKFLOW_ID)


class AgentsRequest(_ActionRequest):
    action: Literal["get_agents"]


class AgentRequest(_ActionRequest):
    action: Literal["get_agent"]
    url: str = Field(..., min_length=1)


class _QueryRequest(_ActionRequest):
    query: str = Field(..., min_length=1)
    context: Optional[Dict[str, Any]] = None


class DetermineAgentRequest(_QueryRequest):
    action: Literal["determine_agent_for_query"]


class ResilientExecutionRequest(_QueryRequest):
    action: Literal["execute_agent_with_resilience"]


class GeneralQueryRequest(_QueryRequest):
    action: Literal["handle_general_mcp_query"]


OrchestratorRequest = Annotated[
    Union[
        DiscoverAgentsRequest,
        QuizWorkflowRequest,
        ManualWorkflowRequest,
        SystemHealthRequest,
        ChatHistoryRequest,
        WorkflowChatHistoryRequest,
        ClearChatHistoryRequest,
        WorkflowsRequest,
        WorkflowRequest,
        AgentsRequest,
        AgentRequest,
        DetermineAgentRequest,
        ResilientExecutionRequest,
        GeneralQueryRequest,
    ],
    Field(discriminator="action"),
]

_request_adapter: TypeAdapter[Any] = TypeAdapter(OrchestratorRequest)

_UNKNOWN_TAG_ERRORS = {"union_tag_invalid", "union_tag_not_found"}


def parse_action(body: Any) -> Any:
    """Validate a POST body into the request model selected by its ``action``."""
    if not isinstance(body, dict):
        raise RequestError("Request body must be a JSON object")
    try:
        return _request_adapter.validate_python(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        if first["type"] in _UNKNOWN_TAG_ERRORS:
            raise UnknownActionError(body.get("action")) from exc
        # The first location element is the union tag itself.
        field = ".".join(str(part) for part in first["loc"][1:]) or "body"
        raise RequestError(f"Invalid {field}: {first['msg']}") from exc


_Handler = Callable[[OrchestratorService, Any], Union[Any, Awaitable[Any]]]

_HANDLERS: Dict[str, _Handler] = {
    "discover_agents": lambda s, r: s.discover_agents(),
    "orchestrate_quiz_workflow": lambda s, r: s.orchestrate_quiz_workflow(
        r.topic, r.difficulty, r.question_count
    ),
    "orchestrate_manual_workflow": lambda s, r: s.orchestrate_manual_workflow(r.topic, r.prompt),
    "monitor_system_health": lambda s, r: s.monitor_system_health(),
    "get_chat_history": lambda s, r: s.get_chat_history(),
    "get_workflow_chat_history": lambda s, r: s.get_workflow_chat_history(r.workflow_id),
    "clear_chat_history": lambda s, r: s.clear_chat_history(),
    "get_workflows": lambda s, r: s.get_workflows(),
    "get_workflow": lambda s, r: s.get_workflow(r.workflow_id),
    "get_agents": lambda s, r: s.get_agents(),
    "get_agent": lambda s, r: s.get_agent(r.url),
    "determine_agent_for_query": lambda s, r: s.determine_agent_for_query(r.query, r.context),
    "execute_agent_with_resilience": lambda s, r: s.execute_agent_with_resilience(
        r.query, r.context
    ),
    "handle_general_mcp_query": lambda s, r: s.handle_general_mcp_query(r.query, r.context),
}


async def _run(action: str, call: Callable[[], Any]) -> Any:
    try:
        result = call()
        if inspect.isawaitable(result):
            result = await result
    except OrchestratorError:
        raise
    except Exception as exc:
        logger.exception("orchestrator_action_failed", action=action)
        raise OrchestratorError(str(exc) or type(exc).__name__) from exc
    return result


@router.post("")
async def orchestrator_action(
    request: Request,
    service: OrchestratorService = Depends(get_service),
) -> Any:
    try:
        body = await request.json()
    except ValueError as exc:
        raise RequestError("Request body must be valid JSON") from exc

    parsed = parse_action(body)
    handler = _HANDLERS[parsed.action]
    logger.debug("orchestrator_action", action=parsed.action)
    return await _run(parsed.action, lambda: handler(service, parsed))


@router.get("")
async def orchestrator_query(
    action: Optional[str] = None,
    service: OrchestratorService = Depends(get_service),
) -> Any:
    if action == "health":
        return {"status": "ok", "service": "quiz-orchestrator", "version": SERVICE_VERSION}
    if action == "status":
        status = service.status()
        status["orchestrator"]["version"] = SERVICE_VERSION
        return status
    if action == "chat_history":
        return service.get_chat_history()
    if action == "workflows":
        return service.get_workflows()
    if action == "agents":
        return service.get_agents()
    raise UnknownActionError(action)
