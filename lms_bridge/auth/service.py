"""Google OAuth2 helpers for the Classroom adapter.

Tokens are never held by the process: after the authorization-code exchange
the pair is signed into an HttpOnly cookie and every request rebuilds its own
session from it.
"""

import time
import logging
from urllib.parse import urlencode

import httpx
from fastapi import Response
from jose import JWTError, jwt

from lms_bridge.common.errors import AuthRequiredError, UpstreamError, ValidationError
from lms_bridge.core.config import Settings, get_settings
from .schemas import TokenPair

logger = logging.getLogger("auth.classroom")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = [
    "https://www.googleapis.com/auth/classroom.courses",
    "https://www.googleapis.com/auth/classroom.coursework.me",
    "https://www.googleapis.com/auth/classroom.coursework.students",
    "https://www.googleapis.com/auth/classroom.rosters",
    "https://www.googleapis.com/auth/classroom.profile.emails",
    "https://www.googleapis.com/auth/classroom.student-submissions.me.readonly",
    "https://www.googleapis.com/auth/classroom.student-submissions.students.readonly",
]

SESSION_COOKIE_NAME = "classroom_session"
SESSION_ALGORITHM = "HS256"
SESSION_TTL = 30 * 24 * 60 * 60  # 30 days; bounded by the refresh token's own lifetime
REFRESH_THRESHOLD = 5 * 60  # refresh when the access token expires within this time
FORM_CT = "application/x-www-form-urlencoded"


def _require_oauth_config(settings: Settings) -> None:
    if not settings.classroom_configured:
        raise UpstreamError(
            "Google Classroom is not configured (GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET / GOOGLE_REDIRECT_URI)."
        )


def build_auth_url(settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    _require_oauth_config(settings)
    query = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(query)}"


def _tokens_from_body(body: dict, previous_refresh: str | None = None) -> TokenPair:
    expires_in = body.get("expires_in")
    expires_at = int(time.time()) + int(expires_in) if expires_in else None
    return TokenPair(
        access_token=body["access_token"],
        # Google omits refresh_token on refresh grants; keep the one we had
        refresh_token=body.get("refresh_token") or previous_refresh,
        token_type=body.get("token_type") or "Bearer",
        expires_at=expires_at,
        scope=body.get("scope"),
    )


async def _token_request(payload: dict) -> dict:
    timeout = httpx.Timeout(connect=3, read=10, write=5, pool=5)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.post(GOOGLE_TOKEN_URL, data=payload, headers={"Content-Type": FORM_CT})
    except httpx.RequestError as e:
        raise UpstreamError(f"Google token endpoint unreachable: {e}") from e

    try:
        body = r.json()
    except ValueError:
        body = {}
    if r.status_code != 200 or "access_token" not in body:
        detail = None
        if isinstance(body, dict):
            detail = body.get("error_description") or body.get("error")
        detail = detail or r.text.strip()[:200] or f"HTTP {r.status_code}"
        raise UpstreamError(f"Authentication failed: {detail}", status=r.status_code)
    return body


async def exchange_code(code: str, settings: Settings | None = None) -> TokenPair:
    """Trade an authorization code for an access/refresh token pair."""
    settings = settings or get_settings()
    _require_oauth_config(settings)
    if not code:
        raise ValidationError("Missing authorization code")
    body = await _token_request(
        {
            "code": code,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "redirect_uri": settings.google_redirect_uri,
            "grant_type": "authorization_code",
        }
    )
    logger.info("Google authorization code exchanged (refresh token issued: %s)", bool(body.get("refresh_token")))
    return _tokens_from_body(body)


async def refresh_access_token(refresh_token: str, settings: Settings | None = None) -> TokenPair:
    settings = settings or get_settings()
    _require_oauth_config(settings)
    body = await _token_request(
        {
            "refresh_token": refresh_token,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "grant_type": "refresh_token",
        }
    )
    return _tokens_from_body(body, previous_refresh=refresh_token)


def encode_session(tokens: TokenPair, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    claims = {
        "at": tokens.access_token,
        "rt": tokens.refresh_token,
        "xat": tokens.expires_at,
        "exp": int(time.time()) + SESSION_TTL,
    }
    return jwt.encode(claims, settings.session_secret, algorithm=SESSION_ALGORITHM)


def decode_session(token: str, settings: Settings | None = None) -> TokenPair:
    """Verify a session cookie and return its token pair.

    Raises:
        AuthRequiredError: bad signature, expired session or malformed claims.
    """
    settings = settings or get_settings()
    try:
        claims = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALGORITHM])
    except JWTError as e:
        raise AuthRequiredError("Invalid or expired Classroom session. Visit /classroom/auth to sign in.") from e
    if not claims.get("at"):
        raise AuthRequiredError("Invalid Classroom session. Visit /classroom/auth to sign in.")
    return TokenPair(access_token=claims["at"], refresh_token=claims.get("rt"), expires_at=claims.get("xat"))


def should_refresh(tokens: TokenPair, now: float | None = None) -> bool:
    if not tokens.refresh_token or tokens.expires_at is None:
        return False
    now = time.time() if now is None else now
    return tokens.expires_at <= now + REFRESH_THRESHOLD


def set_session_cookie(resp: Response, tokens: TokenPair, settings: Settings | None = None) -> str:
    """Sign ``tokens`` into the session cookie and return the signed value."""
    settings = settings or get_settings()
    value = encode_session(tokens, settings)
    resp.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite.lower(),  # type: ignore
        domain=settings.cookie_domain,
        max_age=SESSION_TTL,
        path="/",
    )
    return value


def clear_session_cookie(resp: Response, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    resp.delete_cookie(key=SESSION_COOKIE_NAME, domain=settings.cookie_domain, path="/")
