"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studybot import __version__
from studybot.api.chat import router as chat_router
from studybot.api.profile import router as profile_router
from studybot.chat.controller import dispose_chat_controller

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    On shutdown the chat session is disposed, so a reply still streaming
    is detached and whatever arrived so far stays in the log.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Startup
    logger.info("Starting StudyBot API...")
    yield
    # Shutdown
    logger.info("Shutting down StudyBot API...")
    dispose_chat_controller()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="StudyBot API",
        description=(
            "Study assistant chat for the StudyWithMe website. Streams replies "
            "from a remote language model, keeps the conversation log on the "
            "device and gates chatting on a user profile."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(chat_router)
    application.include_router(profile_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "studybot"}

    return application


app = create_app()
