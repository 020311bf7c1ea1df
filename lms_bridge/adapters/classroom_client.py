from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from lms_bridge.common.errors import AuthRequiredError, UpstreamError

logger = logging.getLogger(__name__)

CLASSROOM_API_BASE = "https://classroom.googleapis.com/v1"


def _google_error(response: httpx.Response) -> str:
    """Extract ``error.message`` from Google's JSON error envelope."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()[:200] or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            return err.get("message") or err.get("status") or f"HTTP {response.status_code}"
        if isinstance(err, str):
            return data.get("error_description") or err
    return f"HTTP {response.status_code}"


class ClassroomClient:
    """Google Classroom REST client bound to one user's access token."""

    def __init__(
        self,
        access_token: str,
        base_url: str = CLASSROOM_API_BASE,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=5.0))
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ClassroomClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("Classroom %s %s params=%s", method, url, params)
        try:
            response = await self.client.request(method, url, headers=self.headers, params=params, json=json)
        except httpx.RequestError as e:
            logger.error("Request error calling Classroom %s: %s", url, e)
            raise UpstreamError(f"Request to Google Classroom failed: {e}") from e

        if response.status_code == 401:
            raise AuthRequiredError("Google credentials expired or revoked. Visit /classroom/auth to sign in again.")
        if response.status_code >= 400:
            message = _google_error(response)
            logger.error("Classroom HTTP %s for %s %s: %s", response.status_code, method, url, message)
            raise UpstreamError(message, status=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Google Classroom returned a non-JSON body") from e

    async def get(self, path: str, **params: Any) -> Dict[str, Any]:
        return await self.request("GET", path, params=params or None)

    async def list_all(self, path: str, key: str, **params: Any) -> list[Dict[str, Any]]:
        """Collect every page of a listing keyed by ``key`` (``nextPageToken`` paging)."""
        items: list[Dict[str, Any]] = []
        query = dict(params)
        while True:
            page = await self.get(path, **query)
            items.extend(page.get(key) or [])
            token = page.get("nextPageToken")
            if not token:
                return items
            query["pageToken"] = token
