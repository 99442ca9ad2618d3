"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ollama_chat.api.routes import (
    attachments_router,
    connection_router,
    prompts_router,
    sessions_router,
)
from ollama_chat.chat.controller import ChatController
from ollama_chat.config import get_app_config

logger = logging.getLogger(__name__)


def create_app(controller: ChatController | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        controller: Controller to serve. Built from the environment at
            startup when omitted.

    Returns:
        Configured FastAPI application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Build the controller if needed, probe the server, close on shutdown."""
        # Startup
        if getattr(app.state, "controller", None) is None:
            app.state.controller = ChatController.from_config(get_app_config())
        logger.info("Starting Ollama Chat API...")
        state = await app.state.controller.check_connection()
        logger.info(f"Ollama server is {state.value}")
        yield
        # Shutdown
        logger.info("Shutting down Ollama Chat API...")
        await app.state.controller.aclose()

    application = FastAPI(
        title="Ollama Chat API",
        description=(
            "Multi-session chat client for a local Ollama server. Manages "
            "conversation history, prompt templates and image attachments, "
            "and streams assistant replies as Server-Sent Events."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.controller = controller

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(connection_router)
    application.include_router(sessions_router)
    application.include_router(attachments_router)
    application.include_router(prompts_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "ollama-chat"}

    return application
