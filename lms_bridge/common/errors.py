"""Error taxonomy shared by every adapter.

Services raise these; ``lms_bridge.main`` renders them as
``{"error": message}`` with the class status code.
"""

from __future__ import annotations

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse


class LMSBridgeError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(LMSBridgeError):
    """The LMS returned an exception envelope, a non-2xx status, or was unreachable."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.upstream_status = status


class ValidationError(LMSBridgeError):
    """A required request field is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LMSBridgeError):
    """A referenced course, quiz or user does not exist upstream."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthRequiredError(LMSBridgeError):
    """No usable upstream credential is attached to the request."""

    status_code = status.HTTP_401_UNAUTHORIZED


def error_body(message: str) -> dict[str, str]:
    return {"error": message}


async def lms_error_handler(request: Request, exc: LMSBridgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(detail), headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "; ".join(parts) or "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message))
