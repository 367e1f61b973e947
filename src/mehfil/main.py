"""Main entry point for the Mehfil service.

``app`` is the FastAPI application; ``asgi_app`` wraps it with the Socket.IO
server and is what uvicorn should serve.
"""

from __future__ import annotations

import logging

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from mehfil.api.v1 import interactions_router
from mehfil.core.logging_config import setup_logging
from mehfil.core.settings import settings
from mehfil.db.session import create_tables
from mehfil.realtime import MehfilNamespace
from mehfil.services.classifier import get_classifier

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Mehfil API",
    description="Realtime moderated discussion feed",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(interactions_router, prefix="/api/v1")

# Realtime gateway
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if "*" in settings.cors_origins else settings.cors_origins,
)
gateway = MehfilNamespace(settings.mehfil_namespace)
sio.register_namespace(gateway)
app.state.mehfil_gateway = gateway

asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    await create_tables()
    logger.info(
        "Mehfil started (namespace=%s, paused=%s, classifier=%s)",
        settings.mehfil_namespace,
        settings.mehfil_paused,
        "model" if settings.classifier_enabled else "heuristic",
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_classifier().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Realtime moderated discussion feed",
        "realtime": settings.mehfil_namespace,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mehfil.main:asgi_app", host="0.0.0.0", port=8000, reload=settings.debug)
