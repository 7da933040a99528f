"""
Domain exceptions and their FastAPI handlers.

Services raise these instead of ``HTTPException`` so they can be called
outside of a request.  The handlers render every failure in the
RealWorld error envelope::

    {"errors": {"body": ["Article not found"]}}
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"errors": {"body": [self.message]}}


class NotFoundError(ConduitError):
    status_code = 404


class AuthenticationError(ConduitError):
    status_code = 401


class ForbiddenError(ConduitError):
    status_code = 403


class ConflictError(ConduitError):
    status_code = 409


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def conduit_exception_handler(request: Request, exc: ConduitError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Token"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Flatten pydantic errors into ``"<field> <message>"`` strings."""
    messages = []
    for error in exc.errors():
        # Drop only the leading request location; a field may itself be named "body".
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        field = loc[-1] if loc else "request"
        messages.append(f"{field} {error.get('msg', 'is invalid')}")
    logger.debug("Validation failed for %s %s: %s", request.method, request.url.path, messages)
    return JSONResponse(status_code=422, content={"errors": {"body": messages}})
