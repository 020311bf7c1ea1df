"""Middleware refreshing Classroom sessions whose access token is about to expire."""

import logging
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from lms_bridge.auth.service import (
    SESSION_COOKIE_NAME,
    decode_session,
    refresh_access_token,
    set_session_cookie,
    should_refresh,
)
from lms_bridge.common.errors import LMSBridgeError

logger = logging.getLogger("session_middleware")


class ClassroomSessionMiddleware(BaseHTTPMiddleware):
    """Refresh the Google access token carried in the session cookie.

    The refreshed pair is handed to the current request through
    ``request.state.classroom_tokens`` and re-issued as a cookie on the response.
    """

    def __init__(self, app: ASGIApp, auto_refresh: bool = True, prefix: str = "/classroom"):
        super().__init__(app)
        self.auto_refresh = auto_refresh
        self.prefix = prefix
        self.excluded_paths = {
            f"{prefix}/auth",
            f"{prefix}/google/callback",
            f"{prefix}/logout",
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not self.auto_refresh or not path.startswith(self.prefix) or path in self.excluded_paths:
            return await call_next(request)

        cookie = request.cookies.get(SESSION_COOKIE_NAME)
        if not cookie:
            return await call_next(request)

        try:
            tokens = decode_session(cookie)
        except LMSBridgeError:
            # the route dependency reports the invalid session
            return await call_next(request)

        if not should_refresh(tokens):
            return await call_next(request)

        try:
            new_tokens = await refresh_access_token(tokens.refresh_token or "")
        except LMSBridgeError as e:
            logger.warning(f"Failed to auto-refresh Classroom token: {e}")
            return await call_next(request)

        request.state.classroom_tokens = new_tokens
        response = await call_next(request)
        set_session_cookie(response, new_tokens)
        logger.info(f"Auto-refreshed Classroom token for request to {path}")
        return response
