"""LLM client pool for shared model access with concurrency control."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from openai import AsyncOpenAI

from quiz_orchestrator.config import LLMConfig


class LLMPool:
    """Manages shared OpenAI-compatible clients with concurrency limiting."""

    def __init__(self) -> None:
        self._configs: Dict[str, LLMConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register(self, name: str, config: LLMConfig) -> None:
        """Register a provider under ``name``; the client is built on first use."""
        self._configs[name] = config
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)
        self._clients.pop(name, None)

    def register_client(self, name: str, config: LLMConfig, client: Any) -> None:
        """Register an already constructed client object for ``name``."""
        self.register(name, config)
        self._clients[name] = client

    def is_registered(self, name: str) -> bool:
        return name in self._configs

    def config_for(self, name: str) -> LLMConfig:
        if name not in self._configs:
            raise KeyError(f"Model '{name}' not registered in LLM pool")
        return self._configs[name]

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncIterator[Any]:
        """Acquire access to a model client with concurrency control."""
        config = self.config_for(name)

        async with self._semaphores[name]:
            # Lazy initialization on first use
            if name not in self._clients:
                self._clients[name] = AsyncOpenAI(
                    api_key=config.api_key,
                    base_url=config.base_url,
                )
            yield self._clients[name]

    async def aclose(self) -> None:
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        self._clients.clear()
