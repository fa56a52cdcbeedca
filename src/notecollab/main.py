# Main application entry point
import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from .api import (
    collaborators_router,
    health_router,
    invitations_router,
    notes_router,
    presence_router,
    realtime_router,
    sharing_router,
    users_router,
)
from .config import get_settings
from .core.errors import CollaborationError, StoreUnavailable
from .core.logging import LoggingMiddleware, get_logger, setup_logging
from .core.realtime import get_realtime_hub
from .core.schemas.common import ErrorResponse
from .core.redis_client import get_redis_client
from .database import create_tables

# Setup logging first
setup_logging()
logger = get_logger("main")

settings = get_settings()


async def stop_listener(listener: Optional[asyncio.Task]) -> None:
    """Cancel the realtime relay. A relay that already died is logged, not re-raised."""
    if listener is None:
        return
    listener.cancel()
    try:
        await listener
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Realtime listener had failed before shutdown")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(
        "Starting NoteCollab application",
        extra={
            "version": settings.app_version,
            "environment": settings.environment,
            "debug": settings.debug,
        },
    )

    # Redis is optional: without it realtime fan-out stays in-process
    redis_client = get_redis_client()
    try:
        await redis_client.connect()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Continuing without Redis...")

    listener = get_realtime_hub().start_listener()

    # Allow tests to skip touching the real DB (e.g., when using SQLite in-memory)
    if os.getenv("NOTECOLLAB_SKIP_LIFESPAN_DB") == "1":
        logger.info("Skipping DB table creation due to NOTECOLLAB_SKIP_LIFESPAN_DB=1")
    else:
        try:
            await create_tables()
            logger.info("Database tables created/verified")
        except Exception as e:
            logger.error("Failed to create database tables", exc_info=e)
            raise

    yield

    # Shutdown
    logger.info("Shutting down NoteCollab application")
    await stop_listener(listener)
    try:
        await redis_client.disconnect()
        logger.info("Redis connection closed")
    except Exception as e:
        logger.warning(f"Redis disconnect failed: {e}")


app = FastAPI(
    title=settings.app_name,
    description="Collaborative notes: invitations, share links and live presence",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CollaborationError)
async def collaboration_error_handler(request: Request, exc: CollaborationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(DBAPIError)
async def store_error_handler(request: Request, exc: DBAPIError):
    logger.error(
        "Document store call failed",
        extra={"path": request.url.path, "exception_type": type(exc.orig).__name__},
    )
    error = StoreUnavailable()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Documented error bodies rendered by collaboration_error_handler
error_responses = {code: {"model": ErrorResponse} for code in (403, 404, 409, 410, 503)}

# Include routers
for router in (
    notes_router,
    sharing_router,
    invitations_router,
    collaborators_router,
    presence_router,
    realtime_router,
    users_router,
):
    app.include_router(router, prefix="/api", responses=error_responses)
app.include_router(health_router, prefix="/api")


# Root endpoint
@app.get("/")
async def root():
    return {"message": "NoteCollab API"}


# API root endpoint for better navigation
@app.get("/api/")
async def api_root():
    return {
        "message": "NoteCollab API",
        "version": settings.app_version,
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json",
        },
        "endpoints": {
            "notes": "/api/notes/",
            "invitations": "/api/invitations",
            "share": "/api/share/{note_id}",
            "realtime": "/api/realtime/ws",
            "users": "/api/users/me",
            "health": "/api/health/",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("notecollab.main:app", host=settings.host, port=settings.port, reload=settings.reload)
