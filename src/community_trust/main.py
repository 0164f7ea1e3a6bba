# src/community_trust/main.py
"""Main entry point for the community trust service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from community_trust.api.v1 import communities_router, vouches_router
from community_trust.core.errors import TrustError
from community_trust.core.settings import settings
from community_trust.services.notifications import close_notifier

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Community membership and vouch-based trust API",
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
app.include_router(communities_router, prefix="/api/v1")
app.include_router(vouches_router, prefix="/api/v1")


@app.exception_handler(TrustError)
async def trust_error_handler(request: Request, exc: TrustError) -> JSONResponse:
    """Render engine errors with the same ``detail`` envelope as HTTPException."""
    if exc.status_code >= 500:
        logger.error("Unhandled engine error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    close_notifier()


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
        "description": "Community membership and vouch-based trust API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("community_trust.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
