"""FastAPI entry-point exposing the quiz orchestrator."""
from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quiz_orchestrator.api.chat import router as chat_router
from quiz_orchestrator.api.routes import router as orchestrator_router
from quiz_orchestrator.api.well_known import router as well_known_router
from quiz_orchestrator.config import SERVICE_VERSION, config
from quiz_orchestrator.errors import OrchestratorError
from quiz_orchestrator.log import configure_logging
from quiz_orchestrator.runtime import get_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    configure_logging(config.log_level, config.log_json)
    context = get_context()
    # Startup: begin periodic agent discovery
    await context.registry.start()
    logger.info(
        "orchestrator_started",
        environment=config.environment,
        agent_urls=list(context.registry.known_urls),
        llm_configured=context.assistant.configured,
    )
    yield
    # Shutdown: stop discovery and release HTTP clients
    await context.aclose()
    logger.info("orchestrator_stopped")


app = FastAPI(title="Quiz Orchestrator", version=SERVICE_VERSION, lifespan=lifespan)
app.include_router(orchestrator_router)
app.include_router(chat_router)
app.include_router(well_known_router)


@app.exception_handler(OrchestratorError)
async def orchestrator_error_handler(request: Request, exc: OrchestratorError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)
