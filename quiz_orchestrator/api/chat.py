"""Chat endpoint for free-form conversation with the LLM assistant."""
from __future__ import annotations

from typing import List, Literal, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from quiz_orchestrator.errors import LLMError, LLMNotConfiguredError
from quiz_orchestrator.runtime import get_chat_assistant
from quiz_orchestrator.services.chat_assistant import ChatAssistant, looks_like_quiz_request

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(
        ...,
        min_length=1,
        description="User message to answer",
        validation_alias=AliasChoices("message", "userMessage"),
    )
    history: List[ChatTurn] = Field(
        default_factory=list,
        description="Earlier turns of the conversation, oldest first",
        validation_alias=AliasChoices("history", "chatHistory"),
    )


class TokenUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatResponse(BaseModel):
    content: str
    usage: Optional[TokenUsage] = None
    is_quiz_request: bool


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    assistant: ChatAssistant = Depends(get_chat_assistant),
) -> ChatResponse:
    """Answer ``message`` and flag whether it asks for a quiz."""
    reply = await assistant.respond(
        request.message, [turn.model_dump() for turn in request.history]
    )

    try:
        is_quiz = await assistant.is_quiz_request(request.message)
    except LLMNotConfiguredError:
        raise
    except LLMError as exc:
        logger.info("quiz_classifier_fallback", error=exc.message)
        is_quiz = looks_like_quiz_request(request.message)

    return ChatResponse(content=reply["content"], usage=reply["usage"], is_quiz_request=is_quiz)
