"""
Consolidated Packing Service - Main Application

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog
from datetime import datetime, timezone

from config import settings, configure_logging
from exceptions import AppError
from integrations.fulfillment_api import get_fulfillment_api
from services.packing_session_service import get_packing_session_service

configure_logging(settings)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Log configuration
    Shutdown: Stop live sync listeners, close the backend client
    """
    # Startup
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        fulfillment_api_url=settings.fulfillment_api_url,
        sync_enabled=settings.sync_enabled
    )

    if not settings.fulfillment_api_configured:
        logger.warning("fulfillment_api_token_missing")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await get_packing_session_service().shutdown()
    await get_fulfillment_api().close()


# Create FastAPI app
app = FastAPI(
    title="Consolidated Packing Service",
    description="Pool several customer orders and pack them into shared containers",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Basic health status and live session count
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "active_sessions": len(get_packing_session_service().sessions),
        "fulfillment_api_configured": settings.fulfillment_api_configured
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Return an AppError raised outside a route's own handling in the standard format."""
    logger.warning(
        "app_error",
        path=request.url.path,
        method=request.method,
        code=exc.code,
        message=exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.packing_sessions import router as packing_sessions_router
from routes.holds import router as holds_router

app.include_router(packing_sessions_router)  # Prefix already in router
app.include_router(holds_router)  # Prefix already in router


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
