"""Moodle Web Services REST client.

Every call is a form-encoded POST to ``/webservice/rest/server.php``. Moodle
reports most failures inside a 200 body (``{"exception": ..., "message": ...}``),
so the envelope is checked regardless of the HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from lms_bridge.common.errors import UpstreamError
from lms_bridge.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

SERVER_PATH = "/webservice/rest/server.php"
RESPONSE_FORMAT = "json"


def flatten_params(params: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested parameters into Moodle's ``key[0][sub]=value`` form."""
    result: Dict[str, Any] = {}
    for key, value in params.items():
        full_key = f"{prefix}[{key}]" if prefix else key
        if value is None:
            continue
        if isinstance(value, dict):
            result.update(flatten_params(value, full_key))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                if isinstance(item, dict):
                    result.update(flatten_params(item, f"{full_key}[{i}]"))
                else:
                    result[f"{full_key}[{i}]"] = item
        elif isinstance(value, bool):
            result[full_key] = int(value)
        else:
            result[full_key] = value
    return result


def check_envelope(data: Any, wsfunction: str) -> None:
    """Raise ``UpstreamError`` when a response body carries Moodle's exception envelope."""
    if not isinstance(data, dict):
        return
    if "exception" in data or "errorcode" in data:
        error_code = data.get("errorcode")
        message = data.get("message") or data.get("exception") or "Unknown error"
        logger.error("Moodle API error in %s: [%s] %s", wsfunction, error_code or "unknown", message)
        raise UpstreamError(f"Moodle Error: {message}", error_code=error_code)


class MoodleClient:
    """
    Async Moodle REST client, one per inbound request.

    Usage:
        async with MoodleClient.from_settings() as client:
            courses = await client.call("core_course_get_courses")
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not token:
            raise UpstreamError("Moodle is not configured (MOODLE_URL / MOODLE_TOKEN).")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MoodleClient":
        settings = settings or get_settings()
        return cls(settings.moodle_url, settings.moodle_token, timeout=settings.http_timeout_s)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{SERVER_PATH}"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                headers={"Accept": "application/json"},
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "MoodleClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def call(self, wsfunction: str, **params: Any) -> Any:
        """Invoke one web-service function and return its parsed JSON.

        Raises:
            UpstreamError: exception envelope, non-2xx status, unreachable host
                or a body that is not JSON.
        """
        flat = flatten_params(params)
        logger.debug("Moodle call %s params=%s", wsfunction, flat)
        form = {
            "wstoken": self.token,
            "wsfunction": wsfunction,
            "moodlewsrestformat": RESPONSE_FORMAT,
            **flat,
        }
        try:
            response = await self.client.post(self.endpoint, data=form)
        except httpx.RequestError as e:
            logger.error("Request error calling %s: %s", wsfunction, e)
            raise UpstreamError(f"Request to Moodle failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        # an exception envelope wins over the status line
        check_envelope(data, wsfunction)

        if response.status_code >= 400:
            logger.error("HTTP %s calling %s", response.status_code, wsfunction)
            raise UpstreamError(
                f"HTTP {response.status_code}: {response.reason_phrase or response.text[:200]}",
                status=response.status_code,
            )
        if data is None:
            raise UpstreamError(f"Moodle returned a non-JSON body for {wsfunction}")
        return data


async def get_moodle_client():
    """FastAPI dependency yielding a request-scoped client."""
    client = MoodleClient.from_settings()
    try:
        yield client
    finally:
        await client.aclose()
