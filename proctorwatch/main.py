"""
Proctoring Service - FastAPI Application
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .proctor.api import router as proctor_router
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Turns face-mesh and object-detection results into proctoring violations and integrity scores",
    version="1.0.0",
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
        logger.exception(f"RequestError {method} {path}: {e}")
        raise

    duration_ms = int((time.time() - start) * 1000)
    # Frame endpoints are polled several times a second
    if path.endswith("-frame") or path in ["/health", "/favicon.ico"]:
        logger.debug(f"{method} {path} -> {response.status_code} in {duration_ms}ms")
    else:
        logger.info(f"{method} {path} -> {response.status_code} in {duration_ms}ms")

    return response


# CORS middleware - the capture client runs in the candidate's browser
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
    """Configure logging and report the active debounce configuration."""
    setup_logging(
        service_name="proctorwatch",
        level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR
    )
    logger.info(f"No-face window: {settings.NO_FACE_WINDOW_MS}ms")
    logger.info(f"Looking-away window: {settings.LOOKING_AWAY_WINDOW_MS}ms")
    logger.info(f"Object min confidence: {settings.OBJECT_MIN_CONFIDENCE}")
    if settings.EVENT_SINK_URL:
        logger.info(f"Forwarding violations to {settings.EVENT_SINK_URL}")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0"
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Proctoring API Running",
        "docs": "/docs" if settings.DEBUG else "Disabled in production"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("proctorwatch.main:app", host="0.0.0.0", port=8002)
