"""
HTTP front end for the chat-ops orchestrator.

Messages posted to ``/v1/messages`` are dropped into an in-memory chat
platform and handled exactly as a live chat event would be: checklist,
deduplication, retries and reply delivery all run.

Run with:
    uvicorn chatops_orchestrator.api.main:app --reload
    LOG_LEVEL=DEBUG uvicorn chatops_orchestrator.api.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import config
from ..handler import MessageProcessor
from ..models import AppConfig
from ..operations import OperationRegistry
from ..platform import InMemoryPlatform
from ..provider import ProviderClient
from ..tracing import init_tracing_client, shutdown_tracing
from .routes import health, messages

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None):
    """Apply ``logging.level`` (or an explicit override) to the package loggers."""
    resolved = logging.getLevelName((level or config.log_level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S")
    logging.getLogger("chatops_orchestrator").setLevel(resolved)


configure_logging()
logger = logging.getLogger(__name__)


def _announce(settings: AppConfig) -> None:
    orch = settings.orchestrator
    logger.info(
        f"Provider {orch.model} at {orch.base_url}: up to {orch.max_rounds} rounds, "
        f"loop guard after {orch.loop_guard_threshold} skips, "
        f"{orch.retry.max_attempts} attempts from {orch.retry.base_delay}s"
    )
    logger.info(
        f"Planner {'on' if settings.planner.enabled else 'off'}, "
        f"fallback {'on' if settings.fallback.enabled else 'off'}, "
        f"checklist for {'mutating operations' if settings.checklist.mutating_only else 'all operations'}"
    )
    names = OperationRegistry.names()
    logger.info(f"{len(names)} operations registered: {', '.join(names)}")
    logger.debug(f"Single-execution operations: {orch.single_execution_operations}")


def _start_tracing(settings: AppConfig) -> None:
    tracing = init_tracing_client(settings.langfuse)
    if tracing.enabled:
        logger.info(f"Langfuse tracing on ({settings.langfuse.host})")
    elif settings.langfuse.is_configured:
        logger.warning(f"Langfuse tracing off: {tracing.error}")
    else:
        logger.info("Langfuse tracing off: no credentials")


async def _release(app: FastAPI) -> None:
    """Close the HTTP clients owned by the app."""
    encoder = app.state.processor.builder.encoder
    if encoder is not None:
        await encoder.close()
    await app.state.provider.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    _announce(settings)
    _start_tracing(settings)
    try:
        yield
    finally:
        await _release(app)
        shutdown_tracing()
        logger.info("Orchestrator API stopped")


async def _on_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed payloads with 400 rather than FastAPI's 422."""
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
    detail = []
    for error in exc.errors():
        error = dict(error)
        # ctx may hold exception instances
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        detail.append(error)
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(
    settings: Optional[AppConfig] = None,
    provider: Optional[ProviderClient] = None,
    platform: Optional[InMemoryPlatform] = None,
) -> FastAPI:
    """
    Build the API around one MessageProcessor.

    Args:
        settings: Configuration; defaults to the loaded config file.
        provider: Provider client; defaults to one built from ``settings``.
        platform: Chat platform messages are posted into.
    """
    settings = settings or config
    provider = provider or ProviderClient.from_config(settings.orchestrator)
    platform = platform or InMemoryPlatform()

    app = FastAPI(
        title="Chat-ops Orchestrator API",
        description="Runs chat messages through the tool-calling orchestrator.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.provider = provider
    app.state.platform = platform
    app.state.processor = MessageProcessor.from_config(settings, platform, provider)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _on_invalid_request)

    app.include_router(health.router, tags=["Health"])
    app.include_router(messages.router, tags=["Messages"])
    return app


app = create_app()


def run_server():
    """Console entry point: serve ``app`` with uvicorn using the ``server`` section."""
    import uvicorn

    server = config.server
    uvicorn.run(
        "chatops_orchestrator.api.main:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
        workers=1 if server.reload else server.workers,
    )


if __name__ == "__main__":
    run_server()
