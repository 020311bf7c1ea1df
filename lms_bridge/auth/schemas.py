from pydantic import BaseModel
from typing import Optional


class TokenPair(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[int] = None  # unix seconds; None when Google did not say
    scope: Optional[str] = None


class AuthUrlOut(BaseModel):
    authUrl: str
    message: str


class AuthStatusOut(BaseModel):
    authenticated: bool
    hasClassroomAccess: bool
    message: str
