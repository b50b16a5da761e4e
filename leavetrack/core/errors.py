"""
Central error handling for the LeaveTrack API
"""
import logging
import traceback
from typing import Iterable, List

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from leavetrack.core.config import settings
from leavetrack.schemas.validation import FieldError
from leavetrack.services.rate_limiter import RateLimitExceeded
from leavetrack.services.workflow import IllegalTransitionError

logger = logging.getLogger(__name__)


class ValidationFailed(HTTPException):
    """
    A request failed business validation.

    Carries the full list of FieldError so the client can fix everything in
    one round-trip. Defaults to 400; approval permission failures use 403.
    """

    def __init__(self, errors: Iterable[FieldError], status_code: int = status.HTTP_400_BAD_REQUEST):
        self.errors: List[FieldError] = list(errors)
        super().__init__(status_code=status_code, detail="Validation failed")


def _error_body(request: Request, status_code: int, detail) -> dict:
    return {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "path": str(request.url.path),
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details (plus "errors" for ValidationFailed)
    """
    content = _error_body(request, exc.status_code, exc.detail)
    if isinstance(exc, ValidationFailed):
        content["errors"] = [e.model_dump(mode="json") for e in exc.errors]
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(request, 422, "Validation error: Invalid request data"),
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    content = _error_body(request, 422, "Validation error")
    content["errors"] = errors
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)


async def illegal_transition_handler(request: Request, exc: IllegalTransitionError) -> JSONResponse:
    """A state change that the workflow does not allow is a conflict with the current state."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_body(request, 409, str(exc)),
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Throttled: 429 with the number of seconds to wait, in the body and in Retry-After."""
    content = _error_body(request, 429, "Too many requests. Please try again later.")
    content["retry_after"] = exc.retry_after
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=content,
        headers={"Retry-After": str(exc.retry_after)},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, 500, "Internal server error"),
        )

    content = _error_body(request, 500, str(exc))
    content["traceback"] = traceback.format_exc() if settings.APP_ENV == "local" else None
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
