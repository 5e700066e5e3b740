"""
FastAPI Application

Main entry point for the Marketing Attribution API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from attribution_engine.config import get_settings
from attribution_engine.config.logging import configure_logging
from attribution_engine.serving.api.middleware import RequestLoggingMiddleware
from attribution_engine.serving.api.routes import health_router, reports_router

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging("DEBUG" if settings.debug else None)

    logger.info(
        "Starting Marketing Attribution API",
        environment=settings.app_env,
        weight_field=settings.attribution.weight_field,
    )

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Marketing Attribution API",
    description="Attributes CRM conversions to marketing spend and builds hierarchical reports",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Marketing Attribution API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
