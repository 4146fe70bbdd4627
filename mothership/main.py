"""
Mothership Server - Main FastAPI Application

Control surface for the hive: inspect state, force a sync, override a
Thing's outputs and start/stop the polling loop.

Routing Structure:

    1. Direct app routes:
       - GET  /                  -> Plain text banner
       - GET  /health            -> Configuration and polling status

    2. Hive routes (no prefix):
       - GET   /state            -> StateSnapshot with online flags
       - POST  /sync             -> Run one cycle now
       - PATCH /bee/{thing_id}   -> Manual output override

    3. Polling routes (prefix: /polling):
       - POST /polling/start
       - POST /polling/stop

Error Responses:
    Core errors are returned as {"error": message}:
        NotFoundError   -> 404
        ValidationError -> 400
        AuthError, CredentialError, GatewayError -> 502
        SyncError and anything else from the core -> 500
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from mothership import __version__
from mothership.api import hive, polling
from mothership.config import settings
from mothership.core.hive_manager import hive_manager
from mothership.exceptions import (
    AuthError,
    CredentialError,
    GatewayError,
    MothershipError,
    NotFoundError,
    ValidationError,
)

# Configure logging based on DEBUG setting
log_level = logging.DEBUG if settings.debug else logging.INFO
logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Mothership v{__version__}...")
    logger.info(f"Configured for {len(settings.thing_ids)} thing(s)")
    logger.info(f"Polling interval (POLL_MS): {settings.poll_ms}ms")
    logger.info(f"Timeout (API_TIMEOUT): {settings.timeout}s")
    logger.info(f"Server listening on {settings.server_host}:{settings.server_port}")

    await hive_manager.initialize(settings)

    yield

    # Shutdown
    logger.info("Shutting down Mothership...")
    await hive_manager.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Mothership",
    description="Fleet coordinator for Arduino IoT Cloud light-sensing bees",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hive.router, tags=["Hive"])
app.include_router(polling.router, prefix="/polling", tags=["Polling"])


def status_for(error: MothershipError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, (AuthError, CredentialError, GatewayError)):
        return 502
    return 500


@app.exception_handler(MothershipError)
async def mothership_error_handler(request: Request, exc: MothershipError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


@app.get("/", response_class=PlainTextResponse, tags=["UI"])
async def root():
    return "Queens mothership is running"


@app.get("/health", tags=["Health"])
async def health_check():
    """Configuration and polling status."""
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "things": hive_manager.thing_ids,
        "hasCredentials": settings.has_credentials,
        "hasSpace": settings.has_space,
        "mockMode": hive_manager.mocked,
        "pollingMs": settings.poll_ms,
        "polling": hive_manager.polling,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mothership.main:app",
        host=settings.server_host,
        port=settings.server_port,
    )
