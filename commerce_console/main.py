"""
Commerce Console Backend
FastAPI application entry point

- Admin catalog: category taxonomy CRUD and parent-selector options
- Admin sales: refund creation, status lifecycle, order refund summaries
- Storefront: category lookup by URL
- Error sanitization middleware, domain error handler
- Health endpoint with DB ping
"""
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from commerce_console import __version__
from commerce_console.api.routes import admin_categories, admin_refunds, categories
from commerce_console.core.config import settings
from commerce_console.core.database import get_db_session
from commerce_console.core.error_handler import (
    ErrorSanitizationMiddleware,
    commerce_error_handler,
    sanitize_error_message,
)
from commerce_console.core.exceptions import CommerceBaseError
from commerce_console.core.redis_client import close_redis

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} {__version__} starting ({settings.ENVIRONMENT})")
    yield
    await close_redis()
    logger.info("Redis connection closed")


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} API",
    description="Admin console and storefront API: category taxonomy and refund reconciliation.",
    version=__version__,
)

app.add_exception_handler(CommerceBaseError, commerce_error_handler)

# Error sanitization (catches unhandled exceptions)
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_categories.router, prefix="/api", tags=["Admin - Categories"])
app.include_router(admin_refunds.router, prefix="/api", tags=["Admin - Refunds"])
app.include_router(categories.router, prefix="/api", tags=["Storefront"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": __version__,
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with an actual DB ping.
    Returns 503 if database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with get_db_session() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database ping failed: {type(e).__name__}: {e}")
        health_status["database"] = f"error: {sanitize_error_message(e)}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
