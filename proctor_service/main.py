"""
Proctor Service - FastAPI Application
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .proctor.api import router as proctor_router
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Signal-to-event reduction and integrity scoring for proctored sessions",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"RequestError {method} {path}: {e}")
        raise

    if path not in ["/health", "/favicon.ico"]:
        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"{method} {path} -> {response.status_code} in {duration_ms}ms")

    return response


# CORS middleware - allow all origins for LAN access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(proctor_router)


@app.on_event("startup")
async def startup_event():
    """Configure logging and log the active thresholds."""
    setup_logging(
        service_name="proctor-service",
        level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR
    )

    logger.info("Configuration:")
    logger.info(f"  Face absent threshold: {settings.FACE_ABSENT_THRESHOLD_MS}ms")
    logger.info(f"  Looking away: {'on' if settings.LOOKING_AWAY_ENABLED else 'off'} "
                f"({settings.LOOKING_AWAY_THRESHOLD_MS}ms)")
    logger.info(f"  Cooldowns: face={settings.FACE_EVENT_COOLDOWN_MS}ms "
                f"object={settings.OBJECT_EVENT_COOLDOWN_MS}ms")
    logger.info(f"  Confidence threshold: {settings.CONFIDENCE_THRESHOLD}")
    logger.info(f"  Event store: {settings.EVENT_STORE_URL or 'in-process'}")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else "Disabled in production"
    }
