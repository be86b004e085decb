"""Conversational assistant backed by a chat completion provider."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import openai
import structlog

from quiz_orchestrator.errors import LLMError, LLMNotConfiguredError
from quiz_orchestrator.services.llm_pool import LLMPool

logger = structlog.get_logger(__name__)

ASSISTANT_SYSTEM_PROMPT = """You are a helpful AI assistant integrated into a quiz application. You can:

1. **Answer general questions** - Provide helpful, accurate, and friendly responses
2. **Help with quiz creation** - When users ask to create quizzes, guide them on how to do so
3. **Provide educational support** - Help with learning and understanding various topics

Guidelines:
- Be conversational and friendly
- Keep responses concise but informative
- If someone asks to create a quiz, explain that they should use phrases like "create a quiz about [topic]" or "generate a quiz on [subject]"
- If you don't know something, say so honestly"""

CLASSIFIER_SYSTEM_PROMPT = """You are a classifier that determines if a user message is requesting quiz creation.

Return ONLY "true" or "false".

Examples of quiz requests:
- "create a quiz about science"
- "generate a quiz on history"
- "quiz about programming"
- "create questions about biology"

Examples of NOT quiz requests:
- "hello"
- "what is photosynthesis?"
- "help me understand calculus"
"""

_QUIZ_VERBS = ("create", "generate", "make", "build")
_QUIZ_NOUNS = ("quiz", "questions", "test")

DEFAULT_MODEL = "default"


def looks_like_quiz_request(message: str) -> bool:
    lower = message.lower()
    if lower.strip().startswith("quiz"):
        return True
    return any(v in lower for v in _QUIZ_VERBS) and any(n in lower for n in _QUIZ_NOUNS)


class ChatAssistant:
    def __init__(self, llm_pool: LLMPool, model_name: str = DEFAULT_MODEL) -> None:
        self._llm_pool = llm_pool
        self.model_name = model_name

    @property
    def configured(self) -> bool:
        return self._llm_pool.is_registered(self.model_name)

    async def respond(
        self,
        message: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        system_prompt: str = ASSISTANT_SYSTEM_PROMPT,
    ) -> Dict[str, Any]:
        """Generate a reply to ``message`` given prior ``history`` turns."""
        messages: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
        messages.extend(
            {"role": turn["role"], "content": turn["content"]} for turn in history or []
        )
        messages.append({"role": "user", "content": message})

        response = await self._complete(messages)
        content = response.choices[0].message.content or (
            "I apologize, but I couldn't generate a response."
        )
        usage = None
        if getattr(response, "usage", None) is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return {"content": content, "usage": usage}

    async def is_quiz_request(self, message: str) -> bool:
        response = await self._complete(
            [
                {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                {"role": "user", "content": message},
            ],
            temperature=0.0,
            max_tokens=5,
        )
        verdict = (response.choices[0].message.content or "").strip().lower()
        if verdict in {"true", "false"}:
            return verdict == "true"
        logger.info("quiz_classifier_unparsed", verdict=verdict[:40])
        return looks_like_quiz_request(message)

    async def _complete(self, messages: List[Dict[str, str]], **overrides: Any) -> Any:
        if not self.configured:
            raise LLMNotConfiguredError()
        config = self._llm_pool.config_for(self.model_name)
        params = {
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            **overrides,
        }
        try:
            async with self._llm_pool.acquire(self.model_name) as client:
                return await client.chat.completions.create(
                    model=config.model,
                    messages=messages,
                    stream=False,
                    **params,
                )
        except openai.OpenAIError as exc:
            logger.warning("llm_call_failed", model=config.model, error=str(exc))
            raise LLMError(f"Failed to generate response: {exc}") from exc
