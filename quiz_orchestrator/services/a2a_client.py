"""HTTP client for talking to sibling agents."""
from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Dict, Optional

import httpx
import structlog

from quiz_orchestrator.errors import AgentCallError, ProtocolError

logger = structlog.get_logger(__name__)

AGENT_CARD_PATH = "/.well-known/agent-card.json"
PENDING_TASK_STATES = {"submitted", "running", "working"}


class A2AClient:
    """Fetches agent cards and invokes agent skills over plain HTTP.

    Skills are posted to ``/api/actions/{skill_id}``. An agent may answer
    directly or hand back a task that is polled at ``/api/tasks/{id}`` until
    it completes, in which case the result is read from a named artifact.
    """

    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        *,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 30,
    ) -> None:
        self._http = http or httpx.AsyncClient()
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch_agent_card(self, url: str, timeout: float = 5.0) -> Dict[str, Any]:
        """Return the metadata document an agent serves at its well-known path."""
        response = await self._http.get(f"{url}{AGENT_CARD_PATH}", timeout=timeout)
        response.raise_for_status()
        card = response.json()
        if not isinstance(card, dict):
            raise ProtocolError(f"Agent card at {url} is not a JSON object", agent_url=url)
        return card

    async def check_health(self, url: str, timeout: float = 3.0) -> httpx.Response:
        response = await self._http.get(f"{url}/health", timeout=timeout)
        response.raise_for_status()
        return response

    async def execute(
        self,
        url: str,
        skill_id: str,
        payload: Dict[str, Any],
        *,
        timeout: float = 30.0,
        artifact_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Invoke ``skill_id`` on the agent at ``url`` and return its result payload."""
        body = {"messageId": str(uuid.uuid4()), "skillId": skill_id, "input": payload}
        logger.debug("agent_call_started", agent_url=url, skill_id=skill_id)
        try:
            response = await self._http.post(
                f"{url}/api/actions/{skill_id}", json=body, timeout=timeout
            )
        except httpx.HTTPError as exc:
            raise AgentCallError(
                f"Agent call to {url} ({skill_id}) failed: {exc!r}", agent_url=url
            ) from exc

        if response.is_error:
            raise AgentCallError(
                f"Agent {url} answered {response.status_code} for {skill_id}",
                agent_url=url,
            )

        data = self._json(response, url)
        if isinstance(data.get("task"), dict):
            task = await self._wait_for_task(url, data["task"], timeout)
            return self._task_result(url, task, artifact_name)
        if isinstance(data.get("message"), dict):
            return _decode_text_part(url, "Message", data["message"].get("parts"))

        result = data.get("data", data)
        if not isinstance(result, dict):
            return {"result": result}
        return result

    async def _wait_for_task(
        self, url: str, task: Dict[str, Any], timeout: float
    ) -> Dict[str, Any]:
        task_id = task.get("id")
        attempts = 0
        while _task_state(task) in PENDING_TASK_STATES:
            if attempts >= self.max_poll_attempts:
                raise AgentCallError(
                    f"Task {task_id} on {url} did not complete after {attempts} polls",
                    agent_url=url,
                )
            await asyncio.sleep(self.poll_interval)
            attempts += 1
            try:
                response = await self._http.get(f"{url}/api/tasks/{task_id}", timeout=timeout)
                response.raise_for_status()
                polled = self._json(response, url).get("task")
            except (httpx.HTTPError, ProtocolError) as exc:
                logger.warning(
                    "task_poll_failed", agent_url=url, task_id=task_id, attempt=attempts, error=str(exc)
                )
                continue
            if isinstance(polled, dict):
                task = polled
        return task

    def _task_result(
        self, url: str, task: Dict[str, Any], artifact_name: Optional[str]
    ) -> Dict[str, Any]:
        state = _task_state(task)
        if state == "failed":
            raise AgentCallError(f"Task {task.get('id')} failed on {url}", agent_url=url)

        artifacts = [a for a in task.get("artifacts") or [] if isinstance(a, dict)]
        if state != "completed" or not artifacts:
            raise ProtocolError(
                f"Task {task.get('id')} ended in state {state!r} "
                f"with artifacts {'present' if artifacts else 'missing'}",
                agent_url=url,
            )

        artifact = artifacts[0]
        if artifact_name:
            artifact = next((a for a in artifacts if a.get("name") == artifact_name), artifact)
        return _decode_text_part(url, f"Artifact {artifact.get('name')}", artifact.get("parts"))

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError(f"Agent {url} returned a non-JSON body", agent_url=url) from exc
        if not isinstance(data, dict):
            raise ProtocolError(f"Agent {url} returned unexpected JSON", agent_url=url)
        return data


def _task_state(task: Dict[str, Any]) -> Optional[str]:
    status = task.get("status") or {}
    return status.get("state") if isinstance(status, dict) else None


def _decode_text_part(url: str, label: str, parts: Any) -> Dict[str, Any]:
    """Parse the JSON carried by the first text part of an artifact or message."""
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise ProtocolError(f"{label} from {url} has no parts", agent_url=url)
    text = parts[0].get("text")
    if not isinstance(text, str):
        raise ProtocolError(f"{label} from {url} has no text part", agent_url=url)
    try:
        result = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"{label} from {url} is not valid JSON", agent_url=url) from exc
    if not isinstance(result, dict):
        return {"result": result}
    return result
