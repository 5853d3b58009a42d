"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, last_update
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware

setup_logging(settings)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Stack Overflow Crawler API",
    description="Read-only reporting for the Stack Overflow catalog crawler",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(last_update.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Stack Overflow Crawler API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Stack Overflow Crawler API")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Stack Overflow Crawler API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "last_update": "/api/last_update/time"
        }
    }
