"""
FastAPI application entrypoint.

Registers routers, configures CORS, initializes telemetry,
and creates service instances on startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from codechat.core.config import get_settings
from codechat.core.errors import ContextUnavailableError, ProviderRequestError
from codechat.core.telemetry import setup_telemetry
from codechat.routers import chat, config, health
from codechat.services.ai_config import ProviderConfigStore
from codechat.services.chat import ChatAdapter
from codechat.services.context import WorkspaceContextProvider
from codechat.services.sessions import SessionStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """
    Application lifespan handler.
    Initializes services on startup, logs on shutdown.
    """
    settings = get_settings()

    # Configure logging
    logging.basicConfig(level=settings.log_level)

    # Initialize telemetry
    setup_telemetry(settings.otel_console_export)

    # Initialize services
    config_store = ProviderConfigStore(settings.ai_config_path)
    sessions = SessionStore(
        max_sessions=settings.session_max_count,
        ttl_seconds=settings.session_ttl_seconds,
    )
    context_provider = WorkspaceContextProvider(
        settings.workspace_root,
        max_file_bytes=settings.context_max_file_bytes,
    )
    chat_adapter = ChatAdapter(
        sessions,
        config_store,
        context_provider,
        provider_timeout=settings.provider_timeout_seconds,
    )

    # Store in app state for dependency injection
    application.state.config_store = config_store
    application.state.chat_adapter = chat_adapter

    logger.info("Codebase chat API started.")
    yield
    logger.info("Codebase chat API shutting down.")


app = FastAPI(
    title="Codebase Chat API",
    description="Multi-provider LLM chat about the files of a running container.",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProviderRequestError)
async def provider_error_handler(_request: Request, exc: ProviderRequestError) -> JSONResponse:
    logger.warning("Provider %s failed: %s", exc.provider, exc)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


@app.exception_handler(ContextUnavailableError)
async def context_error_handler(_request: Request, exc: ContextUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


# Register routers
app.include_router(health.router)
app.include_router(config.router)
app.include_router(chat.router)
