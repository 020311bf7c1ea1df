from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from lms_bridge.common.errors import UpstreamError
from lms_bridge.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PAGES = 50


def _error_message(response: httpx.Response) -> str:
    """Pick the most useful message out of a Canvas error body."""
    msg = None
    try:
        data = response.json()
        if isinstance(data, dict):
            errors = data.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0]
                msg = first.get("message") if isinstance(first, dict) else str(first)
            elif isinstance(errors, dict):
                msg = "; ".join(f"{k}: {v}" for k, v in errors.items())
            msg = msg or data.get("message") or data.get("error")
    except ValueError:
        pass
    return msg or response.text.strip()[:200] or f"HTTP {response.status_code}"


class CanvasClient:
    """Bearer-token client for the Canvas REST API (``/api/v1``)."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not token:
            raise UpstreamError("Canvas is not configured (CANVAS_API_BASE / CANVAS_API_TOKEN).")
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CanvasClient":
        settings = settings or get_settings()
        return cls(settings.canvas_api_base, settings.canvas_api_token, timeout=settings.http_timeout_s)

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

    async def __aenter__(self) -> "CanvasClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def _request(self, url: str, params: Any = None) -> httpx.Response:
        logger.debug("Canvas GET %s params=%s", url, params)
        try:
            response = await self.client.get(url, headers=self.headers, params=params)
        except httpx.RequestError as e:
            logger.error("Request error calling Canvas %s: %s", url, e)
            raise UpstreamError(f"Request to Canvas failed: {e}") from e
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("Canvas HTTP %s for %s: %s", response.status_code, url, message)
            raise UpstreamError(message, status=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Canvas returned a non-JSON body") from e

    async def get(self, path: str, params: Any = None) -> Any:
        """GET a single resource (or the first page of a listing)."""
        response = await self._request(f"{self.base_url}/{path.lstrip('/')}", params)
        return self._json(response)

    async def get_all(
        self,
        path: str,
        params: Optional[List[tuple]] = None,
        key: Optional[str] = None,
    ) -> List[Any]:
        """GET every page of a listing by following ``Link: rel="next"``.

        ``key`` unwraps listings Canvas nests inside an object, e.g.
        ``{"quiz_submissions": [...]}``.
        """
        query: List[tuple] = list(params or [])
        query.append(("per_page", PER_PAGE))
        url: Optional[str] = f"{self.base_url}/{path.lstrip('/')}"
        items: List[Any] = []
        pages = 0
        while url and pages < MAX_PAGES:
            response = await self._request(url, query if pages == 0 else None)
            page = self._json(response)
            if key is not None and isinstance(page, dict):
                page = page.get(key) or []
            if not isinstance(page, list):
                raise UpstreamError(f"Canvas returned an unexpected listing for {path}")
            items.extend(page)
            pages += 1
            url = response.links.get("next", {}).get("url")
        return items


async def get_canvas_client():
    """FastAPI dependency yielding a request-scoped client."""
    client = CanvasClient.from_settings()
    try:
        yield client
    finally:
        await client.aclose()
