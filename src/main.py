"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import auth, items, lists, sharing, websocket
from src.config import get_settings
from src.exceptions import register_exception_handlers
from src.services.realtime import get_broadcaster, reset_realtime

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    # Startup: create the hub on the loop that serves the sockets
    broadcaster = get_broadcaster()
    listener: asyncio.Task | None = None
    if broadcaster.backplane is not None:
        listener = asyncio.create_task(broadcaster.backplane.listen())
        logger.info("Realtime backplane: redis")
    yield
    # Shutdown
    if listener is not None:
        listener.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await listener
        await broadcaster.backplane.cleanup()
    reset_realtime()


app = FastAPI(
    title="Shared Lists API",
    description="Collaborative shopping lists with real-time sync and invitations",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Register routers
app.include_router(auth.router)
app.include_router(lists.router)
app.include_router(items.router)
app.include_router(sharing.router)
app.include_router(websocket.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
