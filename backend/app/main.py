# app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import asyncio
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from dotenv import load_dotenv

load_dotenv()

from .core.config import settings
from .core.exceptions import (
    ArtifactAgentsException,
    artifact_agents_exception_handler,
    http_exception_handler
)
from .api.middleware import LoggingMiddleware
from .db.session import init_db, close_db, get_db_health_info
from .core.dependencies import initialize_services, cleanup_services

# Secure logging configuration
from .utils.logging_filter import setup_secure_logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Setup secure logging with sensitive data filtering
setup_secure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management with timeout protection"""
    logger.info("Application starting...")

    try:
        async with asyncio.timeout(15):
            if await init_db():
                logger.info("Database initialized successfully")
            else:
                logger.warning("Database initialization failed - artifact persistence may be unavailable")
    except asyncio.TimeoutError:
        logger.warning("Database initialization timed out - artifact persistence may be unavailable")

    async with asyncio.timeout(30):
        await initialize_services()
    logger.info("Application startup completed - ready to accept requests")

    yield

    logger.info("Application shutting down...")
    try:
        async with asyncio.timeout(10):
            await cleanup_services()
            await close_db()
    except asyncio.TimeoutError:
        logger.warning("Cleanup timed out")

    logger.info("Application shutdown completed")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    description="Chat orchestration with streaming, versioned code, diagram and document artifacts",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-Id", "X-Error-Code"]
)

app.add_middleware(LoggingMiddleware)

# Exception handlers
app.add_exception_handler(ArtifactAgentsException, artifact_agents_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "status": "running",
        "api_base": settings.API_PREFIX,
        "timestamp": datetime.now().isoformat()
    }


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    db_health = await get_db_health_info()
    return {
        "status": "healthy" if db_health.get("status") == "healthy" else "degraded",
        "database": db_health,
        "timestamp": datetime.now().isoformat()
    }


# API router registration
from app.api.v1 import chat, artifacts, config

app.include_router(chat.router, prefix=f"{settings.API_PREFIX}/chat", tags=["chat"])
app.include_router(artifacts.router, prefix=f"{settings.API_PREFIX}/artifacts", tags=["artifacts"])
app.include_router(config.router, prefix=f"{settings.API_PREFIX}/config", tags=["config"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
