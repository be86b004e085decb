"""Configuration management for the orchestrator."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

SERVICE_VERSION = "1.0.0"

DEFAULT_AGENT_URLS = (
    "http://localhost:3000",
    "http://localhost:4001",
    "http://localhost:4002",
    "http://localhost:5000",
)


def _split_urls(raw: str) -> Tuple[str, ...]:
    return tuple(url.strip().rstrip("/") for url in raw.split(",") if url.strip())


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class LLMConfig:
    """OpenAI-compatible chat completion provider configuration."""

    api_key: str
    base_url: str = "https://api.deepseek.com"
    model: str = "deepseek-chat"
    max_concurrent: int = 10
    temperature: float = 0.7
    max_tokens: int = 500


@dataclass(frozen=True)
class DiscoveryConfig:
    """Where to look for sibling agents and how often."""

    agent_urls: Tuple[str, ...] = DEFAULT_AGENT_URLS
    interval_seconds: float = 30.0
    probe_timeout: float = 5.0
    health_timeout: float = 3.0


@dataclass(frozen=True)
class AgentEndpoints:
    """Base URLs of the agents the hand-authored workflows target."""

    quiz_agent_url: str = "http://localhost:4001"
    frontend_agent_url: str = "http://localhost:3000"
    manual_agent_url: str = "http://localhost:4002"


@dataclass(frozen=True)
class ResilienceConfig:
    """Circuit breaker and retry tuning."""

    failure_threshold: int = 5
    timeout_seconds: float = 60.0
    success_threshold: int = 3
    retry_attempts: int = 3
    retry_backoff_seconds: float = 1.0


@dataclass(frozen=True)
class WorkflowConfig:
    """Timeouts used while executing workflow steps."""

    step_timeout: float = 30.0
    task_poll_interval: float = 1.0
    task_poll_max_attempts: int = 30


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    llm: Optional[LLMConfig] = None
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    endpoints: AgentEndpoints = field(default_factory=AgentEndpoints)
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    chat_log_max_messages: int = 1000
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        llm_key = os.getenv("LLM_API_KEY")

        llm_config = None
        if llm_key:
            llm_config = LLMConfig(
                api_key=llm_key,
                base_url=os.getenv("LLM_BASE_URL", "https://api.deepseek.com"),
                model=os.getenv("LLM_MODEL", "deepseek-chat"),
                max_concurrent=int(os.getenv("LLM_MAX_CONCURRENT", "10")),
                temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
                max_tokens=int(os.getenv("LLM_MAX_TOKENS", "500")),
            )

        discovery = DiscoveryConfig(
            agent_urls=_split_urls(os.getenv("AGENT_URLS", ",".join(DEFAULT_AGENT_URLS))),
            interval_seconds=float(os.getenv("AGENT_DISCOVERY_INTERVAL", "30")),
            probe_timeout=float(os.getenv("AGENT_PROBE_TIMEOUT", "5")),
            health_timeout=float(os.getenv("AGENT_HEALTH_TIMEOUT", "3")),
        )

        endpoints = AgentEndpoints(
            quiz_agent_url=os.getenv("QUIZ_AGENT_URL", "http://localhost:4001").rstrip("/"),
            frontend_agent_url=os.getenv("FRONTEND_AGENT_URL", "http://localhost:3000").rstrip("/"),
            manual_agent_url=os.getenv("MANUAL_AGENT_URL", "http://localhost:4002").rstrip("/"),
        )

        resilience = ResilienceConfig(
            failure_threshold=int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "5")),
            timeout_seconds=float(os.getenv("CIRCUIT_TIMEOUT_SECONDS", "60")),
            success_threshold=int(os.getenv("CIRCUIT_SUCCESS_THRESHOLD", "3")),
            retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "3")),
            retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        )

        workflow = WorkflowConfig(
            step_timeout=float(os.getenv("STEP_TIMEOUT", "30")),
            task_poll_interval=float(os.getenv("TASK_POLL_INTERVAL", "1")),
            task_poll_max_attempts=int(os.getenv("TASK_POLL_MAX_ATTEMPTS", "30")),
        )

        return cls(
            llm=llm_config,
            discovery=discovery,
            endpoints=endpoints,
            resilience=resilience,
            workflow=workflow,
            chat_log_max_messages=int(os.getenv("CHAT_LOG_MAX_MESSAGES", "1000")),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", False),
        )


# Global config instance
config = Config.from_env()
