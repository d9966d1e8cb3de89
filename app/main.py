"""
Business Assistant API - Main Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db import init_db
from app.api import auth_router, telegram_router, chat_router
from app.structured_logging import (
    api_log, enable_structured_logging, generate_request_id, set_request_context,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown"""
    logging.basicConfig(level=settings.log_level.upper())
    if settings.structured_logging:
        enable_structured_logging(settings.log_level.upper())

    logger.info(f"{settings.app_name} {settings.app_version} starting up...")
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info(f"{settings.app_name} shutdown complete.")


app = FastAPI(
    title=settings.app_name,
    description="Business assistant with native and Telegram accounts linked into one identity",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    set_request_context(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    api_log.debug(
        "Request handled",
        {"method": request.method, "path": request.url.path, "status": response.status_code},
    )
    return response


# Include routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(chat_router, prefix=settings.api_prefix)
app.include_router(telegram_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "name": settings.app_name,
        "status": "healthy",
        "version": settings.app_version,
    }


@app.get("/health")
async def health():
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
