"""
LeaveTrack - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from leavetrack.api.router import api_router
from leavetrack.core.config import settings
from leavetrack.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    illegal_transition_handler,
    rate_limit_exceeded_handler,
    generic_exception_handler
)
from leavetrack.core.logging import setup_logging
from leavetrack.services.rate_limiter import RateLimitExceeded
from leavetrack.services.workflow import IllegalTransitionError

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme == "sqlite":
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except Exception:
        return "***"
    return url


app = FastAPI(
    title="LeaveTrack",
    description="Leave and work-from-home request validation, approval and escalation engine",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(IllegalTransitionError, illegal_transition_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s", masked)
    logger.info(
        "Escalation: enabled=%s threshold=%sd max_levels=%s; rate limiting enabled=%s",
        settings.ESCALATION_ENABLED,
        settings.ESCALATION_THRESHOLD_DAYS,
        settings.MAX_ESCALATION_LEVELS,
        settings.RATE_LIMIT_ENABLED,
    )
