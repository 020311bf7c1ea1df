from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator

from fastapi import Depends, Request

from lms_bridge.adapters.classroom_client import ClassroomClient
from lms_bridge.common.errors import AuthRequiredError
from lms_bridge.core.config import get_settings
from .schemas import TokenPair
from .service import SESSION_COOKIE_NAME, decode_session


@dataclass
class ClassroomSession:
    """One caller's Google credential, rebuilt for every request."""

    tokens: TokenPair
    source: str  # "cookie" | "session" | "bearer"

    def client(self) -> ClassroomClient:
        return ClassroomClient(self.tokens.access_token, timeout=get_settings().http_timeout_s)


def _bearer(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.removeprefix("Bearer ").strip() or None
    return None


def read_session(request: Request) -> ClassroomSession | None:
    """Return the caller's session, or None when no credential is attached.

    Tokens refreshed earlier in the same request by the session middleware win
    over the (now stale) cookie.
    """
    refreshed = getattr(request.state, "classroom_tokens", None)
    if isinstance(refreshed, TokenPair):
        return ClassroomSession(tokens=refreshed, source="cookie")
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if cookie:
        return ClassroomSession(tokens=decode_session(cookie), source="cookie")
    token = _bearer(request)
    if token:
        # the signed session from /google/callback, else a raw Google access token
        try:
            return ClassroomSession(tokens=decode_session(token), source="session")
        except AuthRequiredError:
            return ClassroomSession(tokens=TokenPair(access_token=token), source="bearer")
    return None


async def require_classroom_session(request: Request) -> ClassroomSession:
    session = read_session(request)
    if session is None:
        raise AuthRequiredError("Not authenticated. Visit /classroom/auth to get an authentication URL.")
    return session


async def get_classroom_client(
    session: ClassroomSession = Depends(require_classroom_session),
) -> AsyncIterator[ClassroomClient]:
    client = session.client()
    try:
        yield client
    finally:
        await client.aclose()
