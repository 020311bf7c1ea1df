import logging

from fastapi import APIRouter, Query, Request, Response

from lms_bridge.common.errors import AuthRequiredError
from lms_bridge.common.schemas import ERROR_RESPONSES
from .schemas import AuthStatusOut, AuthUrlOut
from .deps import read_session
from .service import (
    build_auth_url,
    exchange_code,
    set_session_cookie,
    clear_session_cookie,
)

logger = logging.getLogger("auth.classroom")

router = APIRouter(prefix="/classroom", tags=["classroom-auth"], responses=ERROR_RESPONSES)


@router.get("/auth", response_model=AuthUrlOut)
async def auth_url():
    url = build_auth_url()
    logger.info("Classroom authentication URL issued")
    return {"authUrl": url, "message": "Visit the authUrl to complete authentication"}


@router.get("/google/callback")
async def google_callback(resp: Response, code: str | None = Query(None)):
    """OAuth redirect target: exchange the code and start a session."""
    tokens = await exchange_code(code or "")
    session_token = set_session_cookie(resp, tokens)
    logger.info("Classroom authentication successful")
    return {
        "success": True,
        "message": "Authentication successful! You can now use the APIs.",
        # non-browser clients send this back as "Authorization: Bearer"; browsers get the cookie
        "session": session_token,
    }


@router.get("/status", response_model=AuthStatusOut)
async def auth_status(request: Request):
    try:
        authenticated = read_session(request) is not None
    except AuthRequiredError:
        authenticated = False
    return {
        "authenticated": authenticated,
        "hasClassroomAccess": authenticated,
        "message": "Ready to use APIs" if authenticated else "Authentication required",
    }


@router.post("/logout")
async def logout(resp: Response):
    clear_session_cookie(resp)
    return {"detail": "Logged out"}
